import datetime
import io
from decimal import Decimal

from django.core.cache import cache
from django.core.management import call_command
from django.urls import reverse
from openpyxl import load_workbook
from rest_framework.test import APITestCase

from core.models import AuditEvent, Contract, ContractStateHistory, User
from core.services.contracts import next_contract_number, refresh_contract_states

PASSWORD = 'P@ssw0rd-Maktub1'


class ContractApiTests(APITestCase):
    def setUp(self):
        cache.clear()
        self.admin = User.objects.create_user(
            'admin_c', email='admin_c@maktub.test', password=PASSWORD, role='admin')
        self.supervisor = User.objects.create_user(
            'sup_c', email='sup_c@maktub.test', password=PASSWORD, role='supervisor',
            first_name='Carlos', last_name='Rincón')
        self.other_supervisor = User.objects.create_user(
            'sup_x', email='sup_x@maktub.test', password=PASSWORD, role='supervisor')
        self.employee = User.objects.create_user(
            'emp_c', email='emp_c@maktub.test', password=PASSWORD, role='employee')
        self.stranger = User.objects.create_user(
            'emp_x', email='emp_x@maktub.test', password=PASSWORD, role='employee')

    def _as(self, user):
        self.client.force_authenticate(user=user)

    def _payload(self, **extra):
        data = {
            'clientName': 'Ana Martínez',
            'clientDocumentNumber': '1070123456',
            'description': 'Apoyo asistencial en urgencias',
            'totalAmount': '12000000',
            'startDate': '2025-01-01',
            'endDate': '2025-12-31',
            'contractorId': self.employee.id,
            'supervisorId': self.supervisor.id,
        }
        data.update(extra)
        return data

    def _create(self, **extra):
        self._as(self.admin)
        r = self.client.post(reverse('contracts'), self._payload(**extra), format='json')
        self.assertEqual(r.status_code, 201, r.data)
        return r.data['data']

    def _state(self, contract_id, state, comments=''):
        return self.client.post(reverse('contract_state', args=[contract_id]),
                                {'state': state, 'comments': comments}, format='json')

    # -- create & scope ---------------------------------------------------

    def test_create_assigns_number_and_history(self):
        data = self._create()
        self.assertEqual(data['state'], 'registered')
        self.assertTrue(data['contractNumber'].startswith('CON-'))
        self.assertEqual(data['contractor']['id'], self.employee.id)
        history = ContractStateHistory.objects.filter(contract_id=data['id'])
        self.assertEqual(history.count(), 1)
        self.assertIsNone(history.first().from_state)
        self.assertTrue(AuditEvent.objects.filter(action='contract_create', object_id=data['id']).exists())

    def test_sequential_numbers_within_month(self):
        first = self._create()['contractNumber']
        second = self._create()['contractNumber']
        self.assertEqual(int(second.rsplit('-', 1)[1]), int(first.rsplit('-', 1)[1]) + 1)
        self.assertEqual(next_contract_number(datetime.date(2030, 7, 1)), 'CON-203007-001')

    def test_duplicate_manual_number_rejected(self):
        self._create(contractNumber='CPS-001')
        r = self.client.post(reverse('contracts'), self._payload(contractNumber='CPS-001'), format='json')
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.data['ok'])

    def test_create_validates_amount_and_dates(self):
        self._as(self.admin)
        r = self.client.post(reverse('contracts'), self._payload(totalAmount='0'), format='json')
        self.assertEqual(r.status_code, 400)
        r = self.client.post(reverse('contracts'), self._payload(endDate='2024-12-31'), format='json')
        self.assertEqual(r.status_code, 400)

    def test_list_is_scoped_by_role(self):
        cid = self._create()['id']
        self._create(contractorId=self.stranger.id, supervisorId=self.other_supervisor.id)

        self._as(self.employee)
        r = self.client.get(reverse('contracts'))
        self.assertEqual(r.data['pagination']['total'], 1)
        self.assertEqual(r.data['data'][0]['id'], cid)

        self._as(self.supervisor)
        self.assertEqual(self.client.get(reverse('contracts')).data['pagination']['total'], 1)

        self._as(self.admin)
        self.assertEqual(self.client.get(reverse('contracts')).data['pagination']['total'], 2)

        self._as(self.stranger)
        self.assertEqual(self.client.get(reverse('contract_detail', args=[cid])).status_code, 403)

    def test_list_filters(self):
        self._create(clientName='Pedro Pérez')
        self._create(clientName='Lucía Rojas', totalAmount='3000000')
        r = self.client.get(reverse('contracts'), {'q': 'pedro'})
        self.assertEqual(r.data['pagination']['total'], 1)
        r = self.client.get(reverse('contracts'), {'maxAmount': '5000000'})
        self.assertEqual([c['clientName'] for c in r.data['data']], ['Lucía Rojas'])

    # -- state machine ----------------------------------------------------

    def test_state_flow_and_actions(self):
        cid = self._create()['id']
        r = self.client.get(reverse('contract_actions', args=[cid]))
        self.assertEqual({a['state'] for a in r.data['data']}, {'in_execution', 'returned', 'cancelled'})

        r = self._state(cid, 'in_execution')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['data']['state'], 'in_execution')
        r = self._state(cid, 'completed')
        self.assertEqual(r.status_code, 200)
        r = self.client.get(reverse('contract_actions', args=[cid]))
        self.assertEqual(r.data['data'], [])
        self.assertEqual(ContractStateHistory.objects.filter(contract_id=cid).count(), 3)

    def test_invalid_transition_conflict(self):
        cid = self._create()['id']
        r = self._state(cid, 'completed')
        self.assertEqual(r.status_code, 409)
        self.assertEqual(r.data['error']['code'], 'invalid_transition')

    def test_return_requires_comments(self):
        cid = self._create()['id']
        self.assertEqual(self._state(cid, 'returned').status_code, 400)
        r = self._state(cid, 'returned', 'Falta el RP')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['data']['returnComments'], 'Falta el RP')

    def test_employee_cannot_change_state(self):
        cid = self._create()['id']
        self._as(self.employee)
        self.assertEqual(self.client.get(reverse('contract_actions', args=[cid])).data['data'], [])
        self.assertEqual(self._state(cid, 'in_execution').status_code, 403)

    def test_supervisor_of_contract_can_change_state(self):
        cid = self._create()['id']
        self._as(self.other_supervisor)
        self.assertEqual(self._state(cid, 'in_execution').status_code, 403)
        self._as(self.supervisor)
        self.assertEqual(self._state(cid, 'in_execution').status_code, 200)

    # -- edits ------------------------------------------------------------

    def test_edit_records_field_changes(self):
        cid = self._create()['id']
        r = self.client.patch(reverse('contract_detail', args=[cid]),
                              {'totalAmount': '15000000', 'cdp': 'CDP-77'}, format='json')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(Decimal(str(r.data['data']['totalAmount'])), Decimal('15000000'))
        entry = ContractStateHistory.objects.filter(contract_id=cid).order_by('-id').first()
        self.assertEqual(set(entry.field_changes), {'total_amount', 'cdp'})
        self.assertEqual(entry.field_changes['cdp']['new'], 'CDP-77')

    def test_owner_edit_sends_returned_contract_back(self):
        cid = self._create()['id']
        self._state(cid, 'returned', 'Corregir el objeto')
        self._as(self.employee)
        r = self.client.patch(reverse('contract_detail', args=[cid]),
                              {'description': 'Objeto corregido'}, format='json')
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.data['data']['state'], 'registered')

    def test_terminal_contract_is_read_only(self):
        cid = self._create()['id']
        self._state(cid, 'cancelled')
        r = self.client.patch(reverse('contract_detail', args=[cid]), {'cdp': 'X'}, format='json')
        self.assertEqual(r.status_code, 403)

    def test_detail_includes_history(self):
        cid = self._create()['id']
        self._state(cid, 'in_execution')
        r = self.client.get(reverse('contract_detail', args=[cid]))
        self.assertEqual(len(r.data['data']['history']), 2)
        self.assertEqual(r.data['data']['history'][0]['toState'], 'in_execution')

    # -- history, stats, exports -----------------------------------------

    def test_history_listing_and_export(self):
        cid = self._create()['id']
        self._state(cid, 'in_execution')
        r = self.client.get(reverse('contract_history'), {'contractId': cid, 'state': 'in_execution'})
        self.assertEqual(r.data['pagination']['total'], 1)

        r = self.client.get(reverse('contract_history'), {'export': 'xlsx'})
        self.assertEqual(r.status_code, 200)
        self.assertIn('attachment', r['Content-Disposition'])
        ws = load_workbook(io.BytesIO(r.content)).active
        self.assertEqual(ws.cell(row=1, column=1).value, 'Fecha')
        self.assertEqual(ws.max_row, 3)

    def test_stats(self):
        cid = self._create()['id']
        self._create(additionAmount='1000000')
        self._state(cid, 'in_execution')
        r = self.client.get(reverse('contract_stats'))
        data = r.data['data']
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['byState']['in_execution'], 1)
        self.assertEqual(data['byState']['registered'], 1)
        self.assertEqual(Decimal(str(data['totalValue'])), Decimal('25000000'))

    def test_export_contracts(self):
        self._create(clientName='Exportado')
        r = self.client.get(reverse('contract_export'))
        self.assertEqual(r.status_code, 200)
        ws = load_workbook(io.BytesIO(r.content)).active
        self.assertEqual(ws.cell(row=2, column=4).value, 'Exportado')

    # -- payments ---------------------------------------------------------

    def test_payments_admin_only(self):
        cid = self._create()['id']
        payload = {'amount': '500000', 'paymentDate': '2025-02-10', 'paymentMethod': 'Transferencia'}
        self._as(self.employee)
        self.assertEqual(self.client.post(reverse('contract_payments', args=[cid]), payload,
                                          format='json').status_code, 403)
        self._as(self.admin)
        r = self.client.post(reverse('contract_payments', args=[cid]), payload, format='json')
        self.assertEqual(r.status_code, 201)
        self.assertEqual(len(self.client.get(reverse('contract_payments', args=[cid])).data['data']), 1)


class ContractRefreshTests(APITestCase):
    def setUp(self):
        self.contract = Contract.objects.create(
            contract_number='CON-202401-001', client_name='Vencido', total_amount=Decimal('1000'),
            start_date=datetime.date(2024, 1, 1), end_date=datetime.date(2024, 6, 30),
            state=Contract.STATE_IN_EXECUTION,
        )
        Contract.objects.create(
            contract_number='CON-202401-002', client_name='Vigente', total_amount=Decimal('1000'),
            start_date=datetime.date(2024, 1, 1), end_date=datetime.date(2024, 12, 31),
            state=Contract.STATE_IN_EXECUTION,
        )

    def test_refresh_completes_expired_only(self):
        self.assertEqual(refresh_contract_states(datetime.date(2024, 7, 1)), 1)
        self.contract.refresh_from_db()
        self.assertEqual(self.contract.state, Contract.STATE_COMPLETED)
        entry = self.contract.history.first()
        self.assertIsNone(entry.changed_by)
        self.assertEqual(entry.from_state, Contract.STATE_IN_EXECUTION)
        # idempotent
        self.assertEqual(refresh_contract_states(datetime.date(2024, 7, 1)), 0)

    def test_management_command(self):
        out = io.StringIO()
        call_command('refresh_contract_states', '--date', '2025-01-15', stdout=out)
        self.assertIn('Completed 2 expired contracts', out.getvalue())
