"""
Context builders for the three billing documents.

Values come out already formatted (currency, dates, placeholders) so the
HTML templates and the PDF renderer print exactly the same text.
"""
from __future__ import annotations

from django.conf import settings
from django.utils import timezone

from core.documents.formatting import (
    PLACEHOLDER, format_cop, format_long_date, format_percent, format_short_date, month_name, or_placeholder,
)
from core.documents.summary import financial_summary
from core.models import BillingAccount, Profile

DOCUMENT_KINDS = ('activity_report', 'certification', 'invoice')

CERTIFICATION_CODE = 'GJ-F-1561'
CERTIFICATION_VERSION = '4'
CERTIFICATION_APPROVED = '2024-01-01'

DEFAULT_NOVELTIES = (
    'Durante el presente período no se han presentado novedades o situaciones anormales '
    'que afecten el desarrollo del contrato.'
)
DEFAULT_ANNEXES = ['Informe ejecución actividades', 'Planilla pago seguridad social']

DECLARATIONS = (
    ('declaration_single_employer', 'El pagador es mi único empleador'),
    ('declaration_80_percent_income', 'El 80% o más de mis ingresos provienen de prestación de servicios'),
)
BENEFITS = (
    ('benefit_prepaid_health', 'Medicina prepagada'),
    ('benefit_voluntary_pension', 'Aportes voluntarios a pensión'),
    ('benefit_housing_interest', 'Intereses de vivienda'),
    ('benefit_health_contributions', 'Aportes obligatorios a salud'),
    ('benefit_economic_dependents', 'Dependientes económicos'),
)


def _owner(account: BillingAccount):
    return account.contract.contractor or account.created_by


def _profile(user):
    if not user:
        return None
    return Profile.objects.filter(user=user).first()


def _signature_path(profile):
    if not (profile and profile.signature):
        return None
    try:
        return profile.signature.path
    except NotImplementedError:
        return None


def _signature_url(profile):
    return profile.signature.url if profile and profile.signature else None


def _base(account: BillingAccount) -> dict:
    contract = account.contract
    owner = _owner(account)
    profile = _profile(owner)
    period_ref = account.billing_start_date or account.billing_month
    return {
        'org': {
            'name': settings.ORG_NAME,
            'address': settings.ORG_ADDRESS,
            'city': settings.ORG_CITY,
            'department': settings.ORG_DEPARTMENT,
        },
        'accountNumber': account.account_number,
        'contractNumber': contract.contract_number_original or contract.contract_number,
        'contractYear': str(contract.start_date.year) if contract.start_date else PLACEHOLDER,
        'contractObject': or_placeholder(contract.description),
        'contractor': {
            'name': or_placeholder(owner.display_name if owner else contract.client_name),
            'document': or_placeholder(getattr(profile, 'document_number', '') or contract.client_document_number),
            'issueCity': or_placeholder(getattr(profile, 'document_issue_city', '')),
            'address': or_placeholder(getattr(profile, 'address', '') or contract.client_address),
            'phone': or_placeholder(getattr(profile, 'phone', '') or contract.client_phone),
            'email': or_placeholder(getattr(owner, 'email', '') or contract.client_email),
            'city': or_placeholder(getattr(profile, 'city', '')),
            'regime': or_placeholder(getattr(profile, 'tax_regime', '')),
            'rutActivity': or_placeholder(getattr(profile, 'rut_activity_code', '')),
            'bankName': or_placeholder(getattr(profile, 'bank_name', '') or contract.client_bank_name),
            'bankAccount': or_placeholder(getattr(profile, 'bank_account', '') or contract.client_account_number),
            'bankAccountType': getattr(profile, 'bank_account_type', ''),
            'signaturePath': _signature_path(profile),
            'signatureUrl': _signature_url(profile),
        },
        'amount': format_cop(account.amount),
        'periodStart': format_short_date(account.billing_start_date),
        'periodEnd': format_short_date(account.billing_end_date),
        'periodMonth': month_name(period_ref),
        'periodYear': str(period_ref.year) if period_ref else PLACEHOLDER,
    }


def _formatted_summary(account: BillingAccount) -> dict:
    s = financial_summary(
        account.contract, account.amount,
        executed_before=account.executed_before_amount,
        exclude_account_id=account.id,
    )
    return {
        'initial': format_cop(s['initial']),
        'addition': format_cop(s['addition']),
        'total': format_cop(s['total']),
        'executedBefore': format_cop(s['executedBefore']),
        'current': format_cop(s['current']),
        'executed': format_cop(s['executed']),
        'balance': format_cop(s['balance']),
        'percent': format_percent(s['percent']),
    }


def activity_report_context(account: BillingAccount) -> dict:
    ctx = _base(account)
    ctx['title'] = 'INFORME DE ACTIVIDADES'
    ctx['activities'] = [
        {
            'number': i,
            'name': a.activity_name,
            'actions': a.actions_developed,
            'evidence': [e.file_name for e in a.evidence.all()],
        }
        for i, a in enumerate(account.activities.prefetch_related('evidence'), start=1)
    ]
    ctx['summary'] = _formatted_summary(account)
    ctx['retentionNote'] = (
        'Solicito se me aplique la retención en la fuente de acuerdo con lo establecido '
        'en el Artículo 383 del Estatuto Tributario y demás normas que lo reglamentan.'
    )
    return ctx


def _certification_sections(ctx: dict) -> list[dict]:
    month, year = ctx['certificationMonthUpper'], ctx['periodYear']
    return [
        {
            'heading': f'1. SERVICIOS Y/O PRODUCTOS RECIBIDOS A SATISFACCIÓN CORRESPONDIENTES AL PERIODO DEL MES DE '
                       f'{month} DE {year}.',
            'body': (
                'Las actividades desarrolladas por el contratista en el periodo descrito anteriormente, relacionadas '
                'con cada una de las actividades específicas establecidas en los estudios previos y del contrato se '
                'verifica el cumplimiento a satisfacción de la obligación establecida.'
            ),
            'notes': [
                'NOTA 1: Forma parte del presente documento el informe de actividades previamente entregado por el '
                f"contratista el {ctx['reportDeliveryDate']} el cual deberá contener como mínimo: 1. Detalle del "
                'cumplimiento de cada una de las obligaciones con sus debidos soportes y evidencias.',
                'NOTA 2: El informe de ejecución del contratista junto con los soportes del caso deben reposar '
                'igualmente en el expediente contractual electrónico. Si existen entregables físicos deberán reposar '
                'en la carpeta contractual.',
            ],
        },
        {
            'heading': '2. NOVEDADES O SITUACIONES ANORMALES PRESENTADAS DURANTE EL DESARROLLO DEL CONTRATO.',
            'body': ctx['novelties'],
        },
        {
            'heading': '3. CUMPLIMIENTO DE OBLIGACIONES DEL CONTRATISTA RELACIONADAS CON EL PAGO DE SEGURIDAD SOCIAL '
                       'INTEGRAL Y APORTES PARAFISCALES',
            'subtitle': (
                '(Ley 100 de 1993 y sus decretos reglamentarios, en el artículo 50 de la Ley 789 de 2002, Leyes 828 '
                'de 2003, 1122 de 2007, 1150 de 2007 y 1562 de 2012, Decretos 1072 de 2015 y 1273 de 2018 y demás '
                'normas concordantes).'
            ),
            'body': (
                'Se verificó el cumplimiento de las obligaciones del contratista con los sistemas de Seguridad Social '
                'Integral en salud, pensiones y riesgos laborales, información que se puede constatar en la planilla '
                'o certificación de pago correspondiente al periodo aquí relacionado.'
            ),
        },
        {
            'heading': '4. ACTIVIDADES DE TRATAMIENTO Y MONITOREO A LA MATRIZ DE RIESGO DEL CONTRATO.',
            'body': (
                'Se ha realizado el monitoreo por parte de la supervisión, de acuerdo con el tratamiento y/o control '
                'de los riesgos establecido en la matriz de los estudios previos del contrato, evidenciándose que no '
                'hay materialización de los mismos. Lo anterior se verifica a través del informe mensual de '
                'actividades del contratista de acuerdo con las obligaciones específicas pactadas, las cuales han '
                'tenido satisfactorio cumplimiento a la fecha.'
            ),
        },
        {
            'heading': '5. ANEXOS',
            'items': [f'{i}. {a}' for i, a in enumerate(ctx['annexes'], start=1)],
        },
    ]


def certification_context(account: BillingAccount) -> dict:
    ctx = _base(account)
    supervisor = account.contract.supervisor
    cert_date = account.certification_date or timezone.localdate()
    month = (account.certification_month or ctx['periodMonth'] or '').strip()
    ctx.update({
        'title': 'CERTIFICACIÓN DE CUMPLIMIENTO',
        'code': CERTIFICATION_CODE,
        'version': CERTIFICATION_VERSION,
        'approvedOn': CERTIFICATION_APPROVED,
        'certificationMonth': month or PLACEHOLDER,
        'certificationMonthUpper': (month or PLACEHOLDER).upper(),
        'reportDeliveryDate': format_short_date(account.report_delivery_date),
        'novelties': (account.novelties or '').strip() or DEFAULT_NOVELTIES,
        'annexes': [line.strip() for line in (account.annexes or '').splitlines() if line.strip()] or DEFAULT_ANNEXES,
        'supervisorName': supervisor.display_name if supervisor else 'SUPERVISOR DEL CONTRATO',
        'certificationDate': format_long_date(cert_date),
        'summary': _formatted_summary(account),
    })
    contract_ref = f"{ctx['contractNumber']} – {ctx['contractYear']}"
    ctx['intro'] = f'El supervisor del Contrato de Prestación de Servicios No. {contract_ref}'
    ctx['statement'] = (
        f"Que {ctx['contractor']['name']}, identificada(o) con la cédula de ciudadanía No. "
        f"{ctx['contractor']['document']} de {ctx['contractor']['issueCity']}, cumplió a satisfacción con las "
        f"actividades relacionadas con el objeto: \"{ctx['contractObject'].upper()}\", del Contrato de Prestación "
        f"de Servicios No. {contract_ref}, correspondiente al periodo del mes de {ctx['certificationMonth']} del "
        f"año {ctx['periodYear']}, y cumple con el pago de la Seguridad Social Integral."
    )
    ctx['sections'] = _certification_sections(ctx)
    return ctx


def invoice_context(account: BillingAccount) -> dict:
    ctx = _base(account)
    invoice_date = account.invoice_date or timezone.localdate()
    ctx.update({
        'title': 'CUENTA DE COBRO',
        'subtitle': 'DOCUMENTO EQUIVALENTE',
        'invoiceNumber': or_placeholder(account.invoice_number or account.account_number),
        'invoiceCity': or_placeholder(account.invoice_city or ctx['contractor']['city']),
        'invoiceDate': format_long_date(invoice_date),
        'amountInWords': or_placeholder(account.amount_in_words),
        'debtor': settings.ORG_NAME,
        'declarations': [label for field, label in DECLARATIONS if getattr(account, field)],
        'benefits': [label for field, label in BENEFITS if getattr(account, field)],
        'legalNote': (
            'Nota: Este documento equivalente presta mérito ejecutivo y tiene la naturaleza de letra de cambio '
            'según el Artículo 774 del Código de Comercio.'
        ),
    })
    return ctx


BUILDERS = {
    'activity_report': activity_report_context,
    'certification': certification_context,
    'invoice': invoice_context,
}


def build_context(kind: str, account: BillingAccount) -> dict:
    return BUILDERS[kind](account)
