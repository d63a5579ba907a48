import datetime
from decimal import Decimal

import pytest
from django.core.files.uploadedfile import SimpleUploadedFile
from django.urls import reverse

from core.models import AuditEvent, BillingAccount, BillingReview, Contract
from core.documents.context import build_context
from core.services.billing import completion, create_account, parse_observations

pytestmark = pytest.mark.django_db


def _pdf(name='planilla.pdf'):
    return SimpleUploadedFile(name, b'%PDF-1.4 test', content_type='application/pdf')


def _submit(client_for, user, account):
    return client_for(user).post(reverse('billing_submit', args=[account.id]))


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------

def test_create_account(client_for, employee, contract):
    r = client_for(employee).post(reverse('billing_accounts'), {
        'contractId': contract.id, 'amount': '1000000', 'startDate': '2025-04-01', 'endDate': '2025-04-30',
    }, format='json')
    assert r.status_code == 201, r.data
    data = r.data['data']
    assert data['status'] == 'draft'
    assert data['accountNumber'].startswith('CC-')
    assert data['billingMonth'] == datetime.date(2025, 4, 1)
    assert data['completion']['isComplete'] is False


def test_one_account_per_contract_month(client_for, employee, account):
    r = client_for(employee).post(reverse('billing_accounts'), {
        'contractId': account.contract_id, 'amount': '1000000', 'startDate': '2025-03-10', 'endDate': '2025-03-31',
    }, format='json')
    assert r.status_code == 400
    assert 'billingMonth' in r.data['error']['message']


def test_contract_must_be_in_execution(client_for, employee, contract):
    Contract.objects.filter(pk=contract.pk).update(state=Contract.STATE_REGISTERED)
    r = client_for(employee).post(reverse('billing_accounts'), {
        'contractId': contract.id, 'amount': '1000000', 'startDate': '2025-04-01', 'endDate': '2025-04-30',
    }, format='json')
    assert r.status_code == 400


def test_end_before_start_rejected(client_for, employee, contract):
    r = client_for(employee).post(reverse('billing_accounts'), {
        'contractId': contract.id, 'amount': '1000000', 'startDate': '2025-04-30', 'endDate': '2025-04-01',
    }, format='json')
    assert r.status_code == 400


def test_outsider_cannot_bill_contract(client_for, make_user, contract):
    outsider = make_user('employee')
    r = client_for(outsider).post(reverse('billing_accounts'), {
        'contractId': contract.id, 'amount': '1000000', 'startDate': '2025-04-01', 'endDate': '2025-04-30',
    }, format='json')
    assert r.status_code == 403


def test_list_scoped_and_filtered(client_for, employee, supervisor, make_user, account):
    assert client_for(employee).get(reverse('billing_accounts')).data['pagination']['total'] == 1
    assert client_for(supervisor).get(reverse('billing_accounts')).data['pagination']['total'] == 1
    assert client_for(make_user('employee')).get(reverse('billing_accounts')).data['pagination']['total'] == 0
    r = client_for(employee).get(reverse('billing_accounts'), {'status': 'paid'})
    assert r.data['pagination']['total'] == 0


def test_admin_created_account_belongs_to_contractor(admin_user, employee, contract, png):
    from django.core.files.base import ContentFile

    employee.profile.signature.save('firma.png', ContentFile(png()), save=True)
    account = create_account(admin_user, contract, amount=Decimal('1000000'),
                             start=datetime.date(2025, 4, 1), end=datetime.date(2025, 4, 30))
    assert account.created_by == admin_user

    ctx = build_context('invoice', account)
    assert ctx['contractor']['name'] == 'Ana Martínez'
    assert ctx['contractor']['document'] == '1070123456'
    assert ctx['contractor']['bankAccount'] == '00123456789'
    by_key = {s['key']: s for s in completion(account)['sections']}
    assert by_key['signature']['complete'] is True


# ---------------------------------------------------------------------------
# Wizard sections
# ---------------------------------------------------------------------------

def test_save_sections_independently(client_for, employee, account):
    client = client_for(employee)
    r = client.patch(reverse('billing_section', args=[account.id, 'certification']),
                     {'novelties': 'Sin novedad', 'riskMatrixCompliance': True}, format='json')
    assert r.status_code == 200
    r = client.patch(reverse('billing_section', args=[account.id, 'invoice']),
                     {'invoiceNumber': 'F-10', 'amountInWords': 'Un millón de pesos'}, format='json')
    assert r.status_code == 200
    account.refresh_from_db()
    assert account.novelties == 'Sin novedad'
    assert account.risk_matrix_compliance is True
    # fields of other sections are untouched
    assert account.social_security_verified is False
    assert account.invoice_number == 'F-10'
    assert account.amount_in_words == 'Un millón de pesos'
    assert AuditEvent.objects.filter(action='billing_save_invoice', object_id=account.id).exists()


def test_planilla_upload(client_for, employee, account):
    r = client_for(employee).post(reverse('billing_section', args=[account.id, 'planilla']), {
        'planillaNumber': 'PL-77', 'planillaValue': '450000', 'planillaDate': '2025-03-05',
        'planillaFile': _pdf(),
    }, format='multipart')
    assert r.status_code == 200, r.data
    planilla = r.data['data']['planilla']
    assert planilla['number'] == 'PL-77'
    assert planilla['fileUrl']


def test_planilla_rejects_disallowed_file(client_for, employee, account):
    bad = SimpleUploadedFile('run.sh', b'echo hi', content_type='application/x-sh')
    r = client_for(employee).post(reverse('billing_section', args=[account.id, 'planilla']),
                                  {'planillaFile': bad}, format='multipart')
    assert r.status_code == 400


def test_unknown_section(client_for, employee, account):
    r = client_for(employee).patch(reverse('billing_section', args=[account.id, 'nope']), {}, format='json')
    assert r.status_code == 404


def test_details_amount_must_be_positive(client_for, employee, account):
    r = client_for(employee).patch(reverse('billing_section', args=[account.id, 'details']),
                                   {'amount': '0'}, format='json')
    assert r.status_code == 400


def test_moving_start_date_moves_billing_month(client_for, employee, account):
    r = client_for(employee).patch(reverse('billing_section', args=[account.id, 'details']),
                                   {'startDate': '2025-05-02', 'endDate': '2025-05-31'}, format='json')
    assert r.status_code == 200, r.data
    account.refresh_from_db()
    assert account.billing_month == datetime.date(2025, 5, 1)
    # March is free again
    r = client_for(employee).post(reverse('billing_accounts'), {
        'contractId': account.contract_id, 'amount': '1000000', 'startDate': '2025-03-01', 'endDate': '2025-03-31',
    }, format='json')
    assert r.status_code == 201, r.data


def test_start_date_cannot_move_onto_billed_month(client_for, employee, account):
    client = client_for(employee)
    r = client.post(reverse('billing_accounts'), {
        'contractId': account.contract_id, 'amount': '1000000', 'startDate': '2025-04-01', 'endDate': '2025-04-30',
    }, format='json')
    april_id = r.data['data']['id']
    r = client.patch(reverse('billing_section', args=[april_id, 'details']),
                     {'startDate': '2025-03-01', 'endDate': '2025-03-31'}, format='json')
    assert r.status_code == 400
    assert 'billingMonth' in r.data['error']['message']
    assert BillingAccount.objects.filter(contract=account.contract, billing_month=datetime.date(2025, 3, 1)).count() == 1
    assert BillingAccount.objects.get(id=april_id).billing_start_date == datetime.date(2025, 4, 1)


def test_supervisor_cannot_edit_sections(client_for, supervisor, account):
    r = client_for(supervisor).patch(reverse('billing_section', args=[account.id, 'invoice']),
                                     {'invoiceNumber': 'X'}, format='json')
    assert r.status_code == 403


# ---------------------------------------------------------------------------
# Activities & evidence
# ---------------------------------------------------------------------------

def test_activities_with_evidence_and_reorder(client_for, employee, account, png):
    client = client_for(employee)
    r = client.post(reverse('billing_activities', args=[account.id]), {
        'activityName': 'Atención de pacientes', 'actionsDeveloped': 'Consultas',
        'files': [SimpleUploadedFile('foto.png', png(), content_type='image/png')],
    }, format='multipart')
    assert r.status_code == 201, r.data
    first = r.data['data']
    assert first['activityOrder'] == 1
    assert len(first['evidence']) == 1

    r = client.post(reverse('billing_activities', args=[account.id]), {'activityName': 'Informes'}, format='json')
    second = r.data['data']
    assert second['activityOrder'] == 2

    r = client.post(reverse('billing_activities_reorder', args=[account.id]),
                    {'ids': [second['id'], first['id']]}, format='json')
    assert [a['id'] for a in r.data['data']] == [second['id'], first['id']]

    r = client.post(reverse('billing_activities_reorder', args=[account.id]), {'ids': [first['id']]}, format='json')
    assert r.status_code == 400
    r = client.post(reverse('billing_activities_reorder', args=[account.id]),
                    {'ids': [first['id'], first['id'], second['id']]}, format='json')
    assert r.status_code == 400

    evidence_id = first['evidence'][0]['id']
    assert client.delete(reverse('billing_evidence_delete', args=[account.id, evidence_id])).status_code == 200
    assert client.delete(reverse('billing_evidence_delete', args=[account.id, evidence_id])).status_code == 404

    r = client.patch(reverse('billing_activity_detail', args=[account.id, second['id']]),
                     {'actionsDeveloped': 'Informe mensual'}, format='json')
    assert r.data['data']['actionsDeveloped'] == 'Informe mensual'
    assert r.data['data']['activityName'] == 'Informes'
    assert client.delete(reverse('billing_activity_detail', args=[account.id, second['id']])).status_code == 200
    assert account.activities.count() == 1


def test_extra_document_upload(client_for, employee, account):
    r = client_for(employee).post(reverse('billing_documents', args=[account.id]),
                                  {'documentType': 'rut', 'file': _pdf('rut.pdf')}, format='multipart')
    assert r.status_code == 201
    assert r.data['data']['documentType'] == 'rut'


# ---------------------------------------------------------------------------
# Completion & submit
# ---------------------------------------------------------------------------

def test_completion_lists_missing(account):
    status = completion(account)
    assert status['completed'] == 1
    assert status['percent'] == 25
    by_key = {s['key']: s for s in status['sections']}
    assert by_key['details']['complete'] is True
    assert by_key['activities']['missing'] == ['Agregar al menos una actividad']
    assert 'Archivo PDF' in by_key['planilla']['missing']
    assert by_key['signature']['missing'] == ['Agregar firma digital']


def test_submit_incomplete_reports_missing(client_for, employee, account):
    r = _submit(client_for, employee, account)
    assert r.status_code == 400
    assert r.data['error']['code'] == 'billing_incomplete'
    names = {m['section'] for m in r.data['error']['missing']}
    assert 'Actividades' in names
    account.refresh_from_db()
    assert account.status == BillingAccount.STATUS_DRAFT


def test_submit_complete(client_for, employee, complete_account):
    r = client_for(employee).get(reverse('billing_completion', args=[complete_account.id]))
    assert r.data['data']['isComplete'] is True
    r = _submit(client_for, employee, complete_account)
    assert r.status_code == 200
    assert r.data['data']['status'] == 'pending_review'
    assert r.data['data']['submittedAt']
    # locked while under review
    r = client_for(employee).patch(reverse('billing_section', args=[complete_account.id, 'invoice']),
                                   {'invoiceNumber': 'X'}, format='json')
    assert r.status_code == 409
    assert _submit(client_for, employee, complete_account).status_code == 409


def test_only_owner_submits(client_for, admin_user, complete_account):
    assert _submit(client_for, admin_user, complete_account).status_code == 403


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------

def test_review_queue_scoped(client_for, employee, supervisor, make_user, complete_account):
    _submit(client_for, employee, complete_account)
    assert [a['id'] for a in client_for(supervisor).get(reverse('billing_review_queue')).data['data']] == \
        [complete_account.id]
    assert client_for(make_user('supervisor')).get(reverse('billing_review_queue')).data['data'] == []
    assert client_for(employee).get(reverse('billing_review_queue')).status_code == 403


def test_reject_requires_comments_then_resubmit(client_for, employee, supervisor, complete_account):
    _submit(client_for, employee, complete_account)
    url = reverse('billing_review', args=[complete_account.id])
    assert client_for(supervisor).post(url, {'action': 'reject'}, format='json').status_code == 400

    comments = '[INFORME] Falta evidencia de la actividad 1\nRevisar fechas'
    r = client_for(supervisor).post(url, {'action': 'reject', 'comments': comments}, format='json')
    assert r.status_code == 200
    data = r.data['data']
    assert data['status'] == 'rejected'
    assert data['observations'][0] == {
        'documentType': 'INFORME', 'label': 'Informe de Actividades', 'comment': 'Falta evidencia de la actividad 1',
    }
    assert data['reviews'][0]['action'] == 'reject'

    # rejected accounts are editable and can be sent again
    r = client_for(employee).patch(reverse('billing_section', args=[complete_account.id, 'invoice']),
                                   {'invoiceNumber': 'F-2'}, format='json')
    assert r.status_code == 200
    assert _submit(client_for, employee, complete_account).status_code == 200


def test_other_supervisor_cannot_review(client_for, employee, make_user, complete_account):
    _submit(client_for, employee, complete_account)
    other = make_user('supervisor')
    r = client_for(other).post(reverse('billing_review', args=[complete_account.id]), {'action': 'approve'},
                               format='json')
    assert r.status_code == 403


def test_approve_then_mark_paid(client_for, employee, supervisor, admin_user, complete_account):
    _submit(client_for, employee, complete_account)
    r = client_for(supervisor).post(reverse('billing_review', args=[complete_account.id]), {'action': 'approve'},
                                    format='json')
    assert r.data['data']['status'] == 'approved'
    assert BillingReview.objects.filter(account=complete_account, action='approve').count() == 1
    # a second decision is not possible
    r = client_for(supervisor).post(reverse('billing_review', args=[complete_account.id]), {'action': 'approve'},
                                    format='json')
    assert r.status_code == 409

    assert client_for(supervisor).post(reverse('billing_mark_paid', args=[complete_account.id])).status_code == 403
    r = client_for(admin_user).post(reverse('billing_mark_paid', args=[complete_account.id]))
    assert r.status_code == 200
    assert r.data['data']['status'] == 'paid'
    assert r.data['data']['paidAt']


def test_review_comments_listing(client_for, employee, supervisor, complete_account):
    _submit(client_for, employee, complete_account)
    client_for(supervisor).post(reverse('billing_review', args=[complete_account.id]),
                                {'action': 'reject', 'comments': '[CUENTA DE COBRO] Valor en letras errado'},
                                format='json')
    r = client_for(employee).get(reverse('billing_review_comments'))
    assert r.data['pagination']['total'] == 1
    row = r.data['data'][0]
    assert row['accountNumber'] == complete_account.account_number
    assert row['observations'][0]['label'] == 'Cuenta de Cobro'
    r = client_for(employee).get(reverse('billing_review_comments'), {'q': 'inexistente'})
    assert r.data['pagination']['total'] == 0


# ---------------------------------------------------------------------------
# Delete
# ---------------------------------------------------------------------------

def test_owner_deletes_only_drafts(client_for, employee, complete_account):
    _submit(client_for, employee, complete_account)
    assert client_for(employee).delete(reverse('billing_detail', args=[complete_account.id])).status_code == 403


def test_owner_deletes_draft(client_for, employee, account):
    assert client_for(employee).delete(reverse('billing_detail', args=[account.id])).status_code == 200
    assert not BillingAccount.objects.filter(pk=account.pk).exists()


def test_paid_account_cannot_be_deleted(client_for, admin_user, account):
    BillingAccount.objects.filter(pk=account.pk).update(status=BillingAccount.STATUS_PAID)
    assert client_for(admin_user).delete(reverse('billing_detail', args=[account.id])).status_code == 409


# ---------------------------------------------------------------------------
# Observations parsing
# ---------------------------------------------------------------------------

def test_parse_observations():
    text = '[CERTIFICACIÓN] Falta la fecha\n\n  nota general  \n[OTRA] sin etiqueta conocida'
    obs = parse_observations(text)
    assert obs[0] == {'documentType': 'CERTIFICACIÓN', 'label': 'Certificación', 'comment': 'Falta la fecha'}
    assert obs[1] == {'documentType': '', 'label': 'General', 'comment': 'nota general'}
    assert obs[2]['documentType'] == ''
    assert parse_observations('') == []


def test_executed_before_is_optional(account):
    assert account.executed_before_amount is None
    account.executed_before_amount = Decimal('2000000')
    account.save()
    account.refresh_from_db()
    assert account.executed_before_amount == Decimal('2000000')
