import re

import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from core.models import User
from core.tests.conftest import PASSWORD

pytestmark = pytest.mark.django_db


def test_login_returns_jwt_and_legacy_token(make_user):
    make_user('employee', username='u_jwt')
    r = APIClient().post(reverse('login_view'), {'username': 'u_jwt', 'password': PASSWORD}, format='json')
    assert r.status_code == 200
    assert r.data['token']
    assert r.data['jwt_access'] and r.data['jwt_refresh']
    assert r.data['role'] == 'employee'
    assert r.data['user']['profileComplete'] is False


def test_login_accepts_email(make_user):
    make_user('supervisor', username='sup_mail', email='Sup.Mail@maktub.test')
    r = APIClient().post(reverse('login_view'), {'email': 'sup.mail@maktub.test', 'password': PASSWORD},
                         format='json')
    assert r.status_code == 200
    assert r.data['user']['username'] == 'sup_mail'


def test_wrong_password_rejected(make_user):
    make_user('employee', username='u_bad')
    r = APIClient().post(reverse('login_view'), {'username': 'u_bad', 'password': 'nope'}, format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False


def test_no_role_bypass_in_login(make_user):
    u = make_user('employee', username='u1')
    r = APIClient().post(reverse('login_view'), {'username': 'u1', 'password': PASSWORD, 'role': 'super_admin'},
                         format='json')
    assert r.status_code == 200
    u.refresh_from_db()
    assert u.role == 'employee'


def test_token_grants_access_to_me(make_user):
    make_user('employee', username='u_me')
    client = APIClient()
    token = client.post(reverse('login_view'), {'username': 'u_me', 'password': PASSWORD}, format='json').data['token']
    assert client.get(reverse('me')).status_code in (401, 403)
    client.credentials(HTTP_AUTHORIZATION=f'Token {token}')
    r = client.get(reverse('me'))
    assert r.status_code == 200
    assert r.data['data']['username'] == 'u_me'
    assert 'Número de documento' in r.data['data']['missingFields']


def test_jwt_refresh_and_logout_blacklists(make_user):
    make_user('employee', username='u_ref')
    client = APIClient()
    login = client.post(reverse('login_view'), {'username': 'u_ref', 'password': PASSWORD}, format='json').data
    r = client.post(reverse('jwt_refresh'), {'refresh': login['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['jwt_access']

    client.credentials(HTTP_AUTHORIZATION=f"Bearer {login['jwt_access']}")
    r = client.post(reverse('jwt_logout'), {'refresh': login['jwt_refresh']}, format='json')
    assert r.status_code == 200
    assert r.data['blacklisted'] == 1
    r = APIClient().post(reverse('jwt_refresh'), {'refresh': login['jwt_refresh']}, format='json')
    assert r.status_code == 401


def test_password_reset_flow(make_user):
    user = make_user('employee', username='u_reset')
    client = APIClient()
    r = client.post(reverse('password_reset'), {'email': user.email}, format='json')
    assert r.status_code == 200
    assert len(mail.outbox) == 1
    body = mail.outbox[0].body
    uid = re.search(r'uid=([\w-]+)', body).group(1)
    token = re.search(r'token=([\w-]+)', body).group(1)

    r = client.post(reverse('set_password'), {'uid': uid, 'token': token, 'password': 'Otra-Clave-Segura9'},
                    format='json')
    assert r.status_code == 200
    user.refresh_from_db()
    assert user.check_password('Otra-Clave-Segura9')
    # token is single use once the password changed
    r = client.post(reverse('set_password'), {'uid': uid, 'token': token, 'password': 'Tercera-Clave-99'},
                    format='json')
    assert r.status_code == 400


def test_password_reset_unknown_email_same_answer():
    r = APIClient().post(reverse('password_reset'), {'email': 'nadie@maktub.test'}, format='json')
    assert r.status_code == 200
    assert len(mail.outbox) == 0


def test_set_password_rejects_weak_password(make_user):
    from django.contrib.auth.tokens import default_token_generator
    from django.utils.encoding import force_bytes
    from django.utils.http import urlsafe_base64_encode

    user = make_user('employee', username='u_weak')
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    r = APIClient().post(reverse('set_password'), {'uid': uid, 'token': token, 'password': '12345678'},
                         format='json')
    assert r.status_code == 400
    assert r.data['ok'] is False
    assert User.objects.get(pk=user.pk).check_password(PASSWORD)


def test_anonymous_cannot_list_contracts():
    r = APIClient().get(reverse('contracts'))
    assert r.status_code in (401, 403)
    assert r.data['ok'] is False


def test_healthz():
    r = APIClient().get('/healthz')
    assert r.status_code == 200
    assert r.json() == {'ok': True, 'service': 'maktub', 'db': True}


def test_ensure_test_users_is_idempotent():
    from django.core.management import call_command

    call_command('ensure_test_users', '--password', 'Otra-Clave-Segura9')
    call_command('ensure_test_users', '--password', 'Otra-Clave-Segura9')
    assert User.objects.filter(username__in=['superadmin', 'admin1', 'supervisor1', 'empleado1']).count() == 4
    r = APIClient().post(reverse('login_view'), {'email': 'empleado1@maktub.test', 'password': 'Otra-Clave-Segura9'},
                         format='json')
    assert r.status_code == 200
    assert r.data['role'] == 'employee'


def test_password_reset_is_rate_limited():
    client = APIClient()
    codes = [client.post(reverse('password_reset'), {'email': 'nadie@maktub.test'}, format='json').status_code
             for _ in range(6)]
    assert codes[:5] == [200] * 5
    assert codes[5] == 429


def test_login_is_rate_limited(make_user):
    make_user('employee', username='u_throttle')
    client = APIClient()
    codes = [client.post(reverse('login_view'), {'username': 'u_throttle', 'password': 'nope'},
                         format='json').status_code for _ in range(11)]
    assert codes[:10] == [400] * 10
    assert codes[10] == 429
