import datetime
from decimal import Decimal

import pytest
from django.urls import reverse

from core.documents.context import build_context
from core.documents.formatting import (
    PLACEHOLDER, format_cop, format_long_date, format_percent, format_short_date, or_placeholder,
)
from core.documents.render import filename_for, render_html, render_pdf
from core.documents.summary import executed_before_for, financial_summary
from core.models import AuditEvent, BillingAccount, BillingActivity, Contract


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------

@pytest.mark.parametrize('value,expected', [
    (Decimal('1234567.5'), '$ 1.234.568'),
    (0, '$ 0'),
    ('950', '$ 950'),
    (None, '$ 0'),
    (Decimal('-2500000'), '-$ 2.500.000'),
])
def test_format_cop(value, expected):
    assert format_cop(value) == expected


def test_dates_and_placeholders():
    assert format_long_date(datetime.date(2025, 3, 5)) == '05 de marzo de 2025'
    assert format_long_date(None) == PLACEHOLDER
    assert format_short_date(datetime.date(2025, 12, 1)) == '01/12/2025'
    assert format_short_date(None) == '___/___/______'
    assert or_placeholder('  ') == PLACEHOLDER
    assert format_percent(Decimal('8.333')) == '8,33 %'


# ---------------------------------------------------------------------------
# Financial summary
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_summary_uses_approved_and_paid_accounts(contract, account, employee):
    for month, status in ((1, BillingAccount.STATUS_PAID), (2, BillingAccount.STATUS_APPROVED),
                          (4, BillingAccount.STATUS_REJECTED)):
        BillingAccount.objects.create(
            account_number=f'CC-2025{month:02d}-9', contract=contract, created_by=employee,
            amount=Decimal('1000000'), billing_month=datetime.date(2025, month, 1), status=status,
        )
    assert executed_before_for(contract) == Decimal('2000000')

    s = financial_summary(contract, account.amount, exclude_account_id=account.id)
    assert s['total'] == Decimal('12000000')
    assert s['executedBefore'] == Decimal('2000000')
    assert s['executed'] == Decimal('3000000')
    assert s['balance'] == Decimal('9000000')
    assert s['percent'] == Decimal('25.00')


@pytest.mark.django_db
def test_summary_explicit_executed_before_and_addition(contract):
    Contract.objects.filter(pk=contract.pk).update(addition_amount=Decimal('3000000'))
    contract.refresh_from_db()
    s = financial_summary(contract, 1500000, executed_before='4500000')
    assert s['total'] == Decimal('15000000')
    assert s['executed'] == Decimal('6000000')
    assert s['percent'] == Decimal('40.00')


def test_summary_zero_total_has_zero_percent():
    contract = Contract(total_amount=Decimal('0'), addition_amount=Decimal('0'))
    s = financial_summary(contract, 100, executed_before=0)
    assert s['percent'] == Decimal('0')
    assert s['balance'] == Decimal('-100')


def test_summary_negative_total_has_zero_percent():
    contract = Contract(total_amount=Decimal('-1000'), addition_amount=Decimal('0'))
    s = financial_summary(contract, 500, executed_before=0)
    assert s['percent'] == Decimal('0')


# ---------------------------------------------------------------------------
# Contexts & rendering
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_context_prefers_profile_over_contract(account):
    ctx = build_context('invoice', account)
    assert ctx['contractor']['name'] == 'Ana Martínez'
    assert ctx['contractor']['bankName'] == 'Bancolombia'
    assert ctx['contractNumber'] == '123'
    assert ctx['invoiceNumber'] == account.account_number
    assert ctx['amountInWords'] == PLACEHOLDER
    assert ctx['declarations'] == []


@pytest.mark.django_db
def test_certification_context_defaults(account):
    ctx = build_context('certification', account)
    assert ctx['certificationMonth'] == 'marzo'
    assert ctx['sections'][0]['heading'].startswith('1. SERVICIOS Y/O PRODUCTOS')
    assert 'MARZO DE 2025' in ctx['sections'][0]['heading']
    assert ctx['novelties'].startswith('Durante el presente período')
    assert ctx['sections'][4]['items'] == ['1. Informe ejecución actividades', '2. Planilla pago seguridad social']
    assert ctx['supervisorName'] == 'Carlos Rincón'
    assert ctx['summary']['percent'] == '8,33 %'


@pytest.mark.django_db
def test_certification_header_uses_org_name(settings, complete_account):
    settings.ORG_NAME = 'Hospital Regional de Prueba'
    html = render_html('certification', complete_account)
    assert 'HOSPITAL REGIONAL DE PRUEBA' in html
    assert 'SAN RAFAEL' not in html
    assert render_pdf('certification', complete_account).startswith(b'%PDF')


@pytest.mark.django_db
def test_invoice_html_lists_checked_items(account):
    BillingAccount.objects.filter(pk=account.pk).update(
        invoice_number='F-001', amount_in_words='Un millón de pesos m/cte',
        declaration_single_employer=True, benefit_prepaid_health=True,
    )
    account.refresh_from_db()
    html = render_html('invoice', account)
    assert 'CUENTA DE COBRO' in html
    assert 'F-001' in html
    assert '$ 1.000.000' in html
    assert 'El pagador es mi único empleador' in html
    assert 'Medicina prepagada' in html
    assert 'Dependientes económicos' not in html


@pytest.mark.django_db
def test_activity_report_html(account):
    BillingActivity.objects.create(account=account, activity_name='Atención de urgencias',
                                   actions_developed='Triage', activity_order=1)
    html = render_html('activity_report', account)
    assert 'INFORME DE ACTIVIDADES' in html
    assert 'Atención de urgencias' in html
    assert 'Artículo 383' in html


@pytest.mark.django_db
@pytest.mark.parametrize('kind', ['activity_report', 'certification', 'invoice'])
def test_pdf_renders(kind, complete_account):
    content = render_pdf(kind, complete_account)
    assert content.startswith(b'%PDF')
    assert len(content) > 1000


@pytest.mark.django_db
def test_filename(account):
    assert filename_for('certification', account, 'pdf') == 'certificacion_cumplimiento_CC-202503-0001.pdf'


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@pytest.mark.django_db
def test_html_endpoint(client_for, supervisor, account):
    r = client_for(supervisor).get(reverse('document_html', args=[account.id, 'certification']))
    assert r.status_code == 200
    assert r['Content-Type'].startswith('text/html')
    assert 'CERTIFICA:' in r.content.decode()


@pytest.mark.django_db
def test_pdf_endpoint_audited(client_for, employee, complete_account):
    r = client_for(employee).get(reverse('document_pdf', args=[complete_account.id, 'invoice']))
    assert r.status_code == 200
    assert r['Content-Type'] == 'application/pdf'
    assert r['Content-Disposition'].startswith('attachment;')
    assert r.content.startswith(b'%PDF')
    assert AuditEvent.objects.filter(action='document_export', object_id=complete_account.id).exists()

    r = client_for(employee).get(reverse('document_pdf', args=[complete_account.id, 'invoice']), {'inline': '1'})
    assert r['Content-Disposition'].startswith('inline;')


@pytest.mark.django_db
def test_unknown_document_kind(client_for, employee, account):
    r = client_for(employee).get(reverse('document_html', args=[account.id, 'contrato']))
    assert r.status_code == 404


@pytest.mark.django_db
def test_documents_are_scoped(client_for, make_user, account):
    r = client_for(make_user('employee')).get(reverse('document_pdf', args=[account.id, 'invoice']))
    assert r.status_code == 403
