import datetime
import io
from decimal import Decimal

import pytest
from django.core.cache import cache
from PIL import Image
from rest_framework.test import APIClient

from core.models import BillingAccount, BillingActivity, Contract, Profile, User

PASSWORD = 'P@ssw0rd-Maktub1'


@pytest.fixture(autouse=True)
def _isolation(settings, tmp_path):
    # throttle counters live in the cache
    cache.clear()
    settings.MEDIA_ROOT = str(tmp_path / 'media')
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    yield
    cache.clear()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make(role='employee', username=None, **extra):
        counter['n'] += 1
        username = username or f'{role}{counter["n"]}'
        extra.setdefault('email', f'{username}@maktub.test')
        user = User.objects.create_user(username=username, password=PASSWORD, role=role, **extra)
        Profile.objects.get_or_create(user=user)
        return user
    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user('admin', first_name='Laura', last_name='Gómez')


@pytest.fixture
def supervisor(make_user):
    return make_user('supervisor', first_name='Carlos', last_name='Rincón')


@pytest.fixture
def employee(make_user):
    user = make_user('employee', first_name='Ana', last_name='Martínez')
    Profile.objects.filter(user=user).update(
        document_number='1070123456', document_issue_city='Facatativá', phone='3100000000',
        address='Calle 1 # 2-3', city='Facatativá', bank_name='Bancolombia', bank_account='00123456789',
        bank_account_type='Ahorros', tax_regime='No responsable de IVA', rut_activity_code='8621',
    )
    return user


@pytest.fixture
def client_for():
    def _client(user):
        c = APIClient()
        c.force_authenticate(user=user)
        return c
    return _client


@pytest.fixture
def contract(db, admin_user, supervisor, employee):
    return Contract.objects.create(
        contract_number='CON-202501-001',
        contract_number_original='123',
        client_name='Ana Martínez',
        client_document_number='1070123456',
        description='Prestación de servicios de apoyo asistencial',
        total_amount=Decimal('12000000'),
        start_date=datetime.date(2025, 1, 1),
        end_date=datetime.date(2025, 12, 31),
        state=Contract.STATE_IN_EXECUTION,
        contractor=employee,
        supervisor=supervisor,
        created_by=admin_user,
    )


@pytest.fixture
def account(db, contract, employee):
    return BillingAccount.objects.create(
        account_number='CC-202503-0001',
        contract=contract,
        created_by=employee,
        amount=Decimal('1000000'),
        billing_month=datetime.date(2025, 3, 1),
        billing_start_date=datetime.date(2025, 3, 1),
        billing_end_date=datetime.date(2025, 3, 31),
    )


def png_bytes(size=(40, 20)) -> bytes:
    buf = io.BytesIO()
    Image.new('RGB', size, (255, 255, 255)).save(buf, format='PNG')
    return buf.getvalue()


@pytest.fixture
def png():
    return png_bytes


@pytest.fixture
def complete_account(account, employee, png):
    """An account whose four wizard sections are all filled in."""
    from django.core.files.base import ContentFile
    from django.core.files.uploadedfile import SimpleUploadedFile

    BillingActivity.objects.create(account=account, activity_name='Atención de pacientes', activity_order=1)
    account.planilla_number = 'PL-1'
    account.planilla_value = Decimal('450000')
    account.planilla_date = datetime.date(2025, 3, 5)
    account.planilla_file = SimpleUploadedFile('planilla.pdf', b'%PDF-1.4 test', content_type='application/pdf')
    account.save()
    profile = employee.profile
    profile.signature.save('firma.png', ContentFile(png()), save=True)
    return account
