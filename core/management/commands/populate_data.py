"""
Management command to populate the database with demo data.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.contrib.auth.hashers import make_password
from django.db import transaction
from django.utils import timezone

from core.models import (
    BillingAccount, BillingActivity, Contract, ContractStateHistory, Process, Profile, User,
)
from core.services.billing import next_account_number
from core.services.contracts import next_contract_number


class Command(BaseCommand):
    help = 'Populate database with demo processes, users, contracts and billing accounts'

    def add_arguments(self, parser):
        parser.add_argument('--password', default='Maktub123!')

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write('Creando datos de prueba...')
        password = make_password(options['password'])

        processes = self.create_processes()
        admin, supervisor, employees = self.create_users(processes, password)
        contracts = self.create_contracts(admin, supervisor, employees)
        self.create_billing_accounts(contracts)

        self.stdout.write(self.style.SUCCESS('Datos de prueba creados.'))

    def create_processes(self):
        names = ['Gestión Jurídica', 'Urgencias', 'Facturación', 'Talento Humano']
        return [Process.objects.get_or_create(name=n)[0] for n in names]

    def _user(self, username, email, role, name, process, password, profile=None):
        first, _, last = name.partition(' ')
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': email, 'role': role, 'first_name': first, 'last_name': last,
                      'process': process, 'password': password},
        )
        Profile.objects.update_or_create(user=user, defaults=profile or {})
        if created:
            self.stdout.write(f'  usuario {username} ({role})')
        return user

    def create_users(self, processes, password):
        admin = self._user('admin', 'admin@maktub.test', 'admin', 'Laura Gómez', processes[0], password)
        supervisor = self._user('supervisor', 'supervisor@maktub.test', 'supervisor', 'Carlos Rincón',
                                processes[1], password)
        employees = []
        for i, name in enumerate(['Ana Martínez', 'Jorge Pérez', 'Diana Castro'], start=1):
            employees.append(self._user(
                f'contratista{i}', f'contratista{i}@maktub.test', 'employee', name, processes[1], password,
                profile={
                    'document_number': f'1070{i:06d}', 'document_issue_city': 'Facatativá',
                    'phone': f'31000000{i:02d}', 'address': f'Calle {i} # 2-3', 'city': 'Facatativá',
                    'bank_name': 'Bancolombia', 'bank_account': f'0012345{i:04d}', 'bank_account_type': 'Ahorros',
                    'tax_regime': 'No responsable de IVA', 'rut_activity_code': '8621',
                },
            ))
        return admin, supervisor, employees

    def create_contracts(self, admin, supervisor, employees):
        today = timezone.localdate()
        contracts = []
        for i, employee in enumerate(employees):
            if Contract.objects.filter(contractor=employee).exists():
                contracts.append(Contract.objects.filter(contractor=employee).first())
                continue
            start = date(today.year, 1, 1)
            contract = Contract.objects.create(
                contract_number=next_contract_number(today),
                contract_number_original=f'{100 + i}',
                contract_type=Contract.TYPE_FIXED,
                client_name=employee.display_name,
                client_document_number=employee.profile.document_number,
                client_email=employee.email,
                description='Prestación de servicios profesionales de apoyo a la gestión asistencial',
                total_amount=Decimal('36000000'),
                start_date=start,
                end_date=start + timedelta(days=364),
                state=Contract.STATE_IN_EXECUTION,
                contractor=employee,
                supervisor=supervisor,
                created_by=admin,
                area_responsible='Urgencias',
            )
            ContractStateHistory.objects.create(
                contract=contract, to_state=Contract.STATE_REGISTERED, changed_by=admin, comments='Contrato registrado',
            )
            ContractStateHistory.objects.create(
                contract=contract, from_state=Contract.STATE_REGISTERED, to_state=Contract.STATE_IN_EXECUTION,
                changed_by=supervisor,
            )
            contracts.append(contract)
        return contracts

    def create_billing_accounts(self, contracts):
        today = timezone.localdate()
        month = (today.replace(day=1) - timedelta(days=1)).replace(day=1)
        for contract in contracts:
            if contract.billing_accounts.filter(billing_month=month).exists():
                continue
            account = BillingAccount.objects.create(
                account_number=next_account_number(today),
                contract=contract, created_by=contract.contractor, amount=Decimal('3000000'),
                billing_month=month, billing_start_date=month,
                billing_end_date=month.replace(day=28),
            )
            BillingActivity.objects.create(
                account=account, activity_order=1,
                activity_name='Apoyar la atención de pacientes en el servicio de urgencias',
                actions_developed='Atención de turnos asignados y registro en historia clínica.',
            )
            self.stdout.write(f'  cuenta {account.account_number} ({contract.contract_number})')
