"""
HTML and PDF rendering for billing documents.

HTML goes through Django templates under ``core/documents/``; PDFs are built
with reportlab platypus so long activity lists flow onto extra pages.
"""
from __future__ import annotations

import logging
import os
from io import BytesIO
from xml.sax.saxutils import escape

from django.template.loader import render_to_string
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Image, KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from core.documents.context import build_context

logger = logging.getLogger(__name__)

NAVY = colors.HexColor('#1B2A4A')
HEADER_BG = colors.HexColor('#E8EEF6')
GRID = colors.HexColor('#555555')

PAGE_W, PAGE_H = A4
MARGIN = 18 * mm
CONTENT_W = PAGE_W - 2 * MARGIN

FILENAMES = {
    'activity_report': 'informe_actividades',
    'certification': 'certificacion_cumplimiento',
    'invoice': 'cuenta_de_cobro',
}


def render_html(kind: str, account) -> str:
    return render_to_string(f'core/documents/{kind}.html', build_context(kind, account))


def filename_for(kind: str, account, ext: str) -> str:
    return f"{FILENAMES[kind]}_{account.account_number}.{ext}"


# ---------------------------------------------------------------------------
# PDF
# ---------------------------------------------------------------------------

def _styles() -> dict:
    base = getSampleStyleSheet()
    body = ParagraphStyle('Body', parent=base['Normal'], fontName='Helvetica', fontSize=9.5, leading=13,
                          alignment=TA_JUSTIFY, spaceAfter=4)
    return {
        'title': ParagraphStyle('DocTitle', parent=base['Heading1'], fontSize=14, leading=18, alignment=TA_CENTER,
                                textColor=NAVY, spaceAfter=4),
        'subtitle': ParagraphStyle('DocSubtitle', parent=body, alignment=TA_CENTER, fontName='Helvetica-Bold'),
        'heading': ParagraphStyle('Heading', parent=body, fontName='Helvetica-Bold', spaceBefore=8),
        'body': body,
        'center': ParagraphStyle('Center', parent=body, alignment=TA_CENTER),
        'right': ParagraphStyle('Right', parent=body, alignment=TA_RIGHT, fontName='Helvetica-Bold'),
        'note': ParagraphStyle('Note', parent=body, fontName='Helvetica-Oblique', fontSize=8.5, leading=11),
        'small': ParagraphStyle('Small', parent=body, fontSize=8, leading=10, alignment=TA_CENTER,
                                textColor=colors.HexColor('#555555')),
        'cell': ParagraphStyle('Cell', parent=body, fontSize=8.5, leading=11, alignment=0, spaceAfter=0),
        'cellBold': ParagraphStyle('CellBold', parent=body, fontSize=8.5, leading=11, alignment=0, spaceAfter=0,
                                   fontName='Helvetica-Bold'),
    }


def _p(text, style) -> Paragraph:
    return Paragraph(escape(str(text)).replace('\n', '<br/>'), style)


def _grid_table(rows, col_widths, styles, label_cols=(0,)) -> Table:
    data = [
        [_p(cell, styles['cellBold'] if i in label_cols else styles['cell']) for i, cell in enumerate(row)]
        for row in rows
    ]
    t = Table(data, colWidths=col_widths)
    style = [
        ('GRID', (0, 0), (-1, -1), 0.5, GRID),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ]
    for col in label_cols:
        style.append(('BACKGROUND', (col, 0), (col, -1), HEADER_BG))
    t.setStyle(TableStyle(style))
    return t


def _summary_table(summary: dict, styles) -> Table:
    rows = [
        ['Valor inicial', summary['initial'], 'Adiciones', summary['addition']],
        ['Valor total', summary['total'], 'Ejecutado anterior', summary['executedBefore']],
        ['Valor de esta cuenta', summary['current'], 'Total ejecutado', summary['executed']],
        ['Saldo', summary['balance'], '% ejecución', summary['percent']],
    ]
    w = CONTENT_W / 4
    return _grid_table(rows, [w] * 4, styles, label_cols=(0, 2))


def _signature_block(ctx: dict, styles, lines: list[str], with_image: bool = True):
    flow = [Spacer(1, 14 * mm)]
    path = ctx['contractor'].get('signaturePath') if with_image else None
    if path and os.path.exists(path):
        try:
            img = Image(path)
            ratio = img.imageHeight / float(img.imageWidth or 1)
            img.drawWidth = 50 * mm
            img.drawHeight = 50 * mm * ratio
            flow.append(img)
        except OSError:
            logger.warning('signature image unreadable: %s', path)
    flow.append(_p('_' * 40, styles['center']))
    flow.extend(_p(line, styles['center']) for line in lines)
    return KeepTogether(flow)


def _activity_report_story(ctx: dict, styles) -> list:
    c = ctx['contractor']
    story = [
        _p(ctx['title'], styles['title']),
        _p(ctx['org']['name'], styles['small']),
        Spacer(1, 4 * mm),
        _grid_table(
            [
                ['CONTRATISTA', c['name'], 'C.C.', c['document']],
                ['DIRECCIÓN', c['address'], 'TELÉFONO', c['phone']],
                ['CORREO', c['email'], 'RÉGIMEN', c['regime']],
            ],
            [30 * mm, CONTENT_W / 2 - 30 * mm, 25 * mm, CONTENT_W / 2 - 25 * mm], styles, label_cols=(0, 2),
        ),
        Spacer(1, 3 * mm),
        _p(
            'POR CONCEPTO DE PRESTACIÓN DE SERVICIOS DEL PERIODO COMPRENDIDO ENTRE '
            f"{ctx['periodStart']} - {ctx['periodEnd']}, SEGÚN CONTRATO No. {ctx['contractNumber']}.",
            styles['body'],
        ),
        _p(f"SON: {ctx['amount']}", styles['heading']),
        _p(f"Cuenta {c['bankAccountType']} No. {c['bankAccount']} del banco {c['bankName']}.", styles['body']),
        Spacer(1, 2 * mm),
        _summary_table(ctx['summary'], styles),
        _p('ACTIVIDADES DESARROLLADAS:', styles['heading']),
    ]
    if not ctx['activities']:
        story.append(_p('Sin actividades registradas.', styles['note']))
    for a in ctx['activities']:
        story.append(_p(f"{a['number']}. {a['name']}", styles['heading']))
        if a['actions']:
            story.append(_p(a['actions'], styles['body']))
        if a['evidence']:
            story.append(_p('Evidencias: ' + ', '.join(a['evidence']), styles['note']))
    story.append(Spacer(1, 3 * mm))
    story.append(_p(ctx['retentionNote'], styles['note']))
    story.append(_signature_block(ctx, styles, [c['name'], f"C.C. {c['document']}", '(FIRMA DEL CONTRATISTA)']))
    return story


def _certification_story(ctx: dict, styles) -> list:
    header = Table(
        [[
            _p(ctx['org']['name'].upper(), styles['subtitle']),
            _p(
                'TIPO DE DOCUMENTO: FORMATO\nPROCESO: GESTIÓN JURÍDICA\n'
                f"NOMBRE: {ctx['title']}\nCÓDIGO: {ctx['code']} VERSIÓN: {ctx['version']}\n"
                f"FECHA DE APROBACIÓN: {ctx['approvedOn']}",
                styles['small'],
            ),
            _p(ctx['org']['department'].upper(), styles['subtitle']),
        ]],
        colWidths=[CONTENT_W * 0.28, CONTENT_W * 0.44, CONTENT_W * 0.28],
    )
    header.setStyle(TableStyle([
        ('GRID', (0, 0), (-1, -1), 0.5, GRID),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
    ]))
    story = [
        header,
        Spacer(1, 5 * mm),
        _p(ctx['intro'], styles['subtitle']),
        _p('CERTIFICA:', styles['title']),
        _p(ctx['statement'], styles['body']),
    ]
    for section in ctx['sections']:
        story.append(_p(section['heading'], styles['heading']))
        if section.get('subtitle'):
            story.append(_p(section['subtitle'], styles['note']))
        if section.get('body'):
            story.append(_p(section['body'], styles['body']))
        for note in section.get('notes', []):
            story.append(_p(note, styles['note']))
        for item in section.get('items', []):
            story.append(_p(item, styles['body']))
    story.append(Spacer(1, 3 * mm))
    story.append(_summary_table(ctx['summary'], styles))
    story.append(_signature_block(ctx, styles, [ctx['supervisorName'], 'Supervisor del Contrato'], with_image=False))
    return story


def _invoice_story(ctx: dict, styles) -> list:
    c = ctx['contractor']
    label_w = CONTENT_W * 0.3
    story = [
        _p(ctx['title'], styles['title']),
        _p(ctx['subtitle'], styles['subtitle']),
        _p(f"No. {ctx['invoiceNumber']}", styles['right']),
        Spacer(1, 3 * mm),
        _grid_table(
            [
                ['NOMBRE', c['name']],
                ['NIT/CC', c['document']],
                ['DIRECCIÓN', c['address']],
                ['TELÉFONO', c['phone']],
                ['CIUDAD', c['city']],
                ['RÉGIMEN', c['regime']],
                ['ACTIVIDAD RUT', c['rutActivity']],
            ],
            [label_w, CONTENT_W - label_w], styles,
        ),
        Spacer(1, 3 * mm),
        _grid_table(
            [
                ['DEBE A:', c['name']],
                ['DEUDOR:', ctx['debtor']],
                ['LA SUMA DE:', ctx['amountInWords']],
                ['VALOR:', ctx['amount']],
                ['CONCEPTO:', f"Prestación de servicios del periodo {ctx['periodStart']} - {ctx['periodEnd']}, "
                              f"contrato No. {ctx['contractNumber']}"],
                ['CUENTA:', f"{c['bankAccountType']} No. {c['bankAccount']} - {c['bankName']}"],
            ],
            [label_w, CONTENT_W - label_w], styles,
        ),
    ]
    if ctx['declarations']:
        story.append(_p('DECLARO BAJO LA GRAVEDAD DEL JURAMENTO:', styles['heading']))
        story.extend(_p(f'(X) {d}', styles['body']) for d in ctx['declarations'])
    if ctx['benefits']:
        story.append(_p('BENEFICIOS TRIBUTARIOS APLICABLES:', styles['heading']))
        story.extend(_p(f'(X) {b}', styles['body']) for b in ctx['benefits'])
    story.append(Spacer(1, 3 * mm))
    story.append(_p(ctx['legalNote'], styles['note']))
    story.append(_signature_block(
        ctx, styles,
        ['FIRMA DEL CONTRATISTA', c['name'], f"C.C. {c['document']}", f"{ctx['invoiceCity']}, {ctx['invoiceDate']}"],
    ))
    return story


STORIES = {
    'activity_report': _activity_report_story,
    'certification': _certification_story,
    'invoice': _invoice_story,
}


def _footer(ctx: dict):
    def draw(canv, doc):
        canv.saveState()
        canv.setFont('Helvetica', 7.5)
        canv.setFillColor(colors.HexColor('#555555'))
        canv.drawCentredString(PAGE_W / 2, 12 * mm, f"{ctx['org']['name']} - {ctx['org']['address']}")
        canv.drawRightString(PAGE_W - MARGIN, 8 * mm, f'Página {doc.page}')
        if ctx.get('certificationDate'):
            canv.drawString(MARGIN, 8 * mm, f"Fecha de Certificación: {ctx['certificationDate']}")
        canv.restoreState()
    return draw


def render_pdf(kind: str, account) -> bytes:
    ctx = build_context(kind, account)
    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer, pagesize=A4,
        leftMargin=MARGIN, rightMargin=MARGIN, topMargin=MARGIN, bottomMargin=22 * mm,
        title=f"{ctx['title']} {account.account_number}", author=ctx['org']['name'],
    )
    footer = _footer(ctx)
    doc.build(STORIES[kind](ctx, _styles()), onFirstPage=footer, onLaterPages=footer)
    logger.info('rendered %s pdf for %s', kind, account.account_number)
    return buffer.getvalue()
