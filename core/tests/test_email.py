import pytest
from django.core import mail
from django.urls import reverse
from rest_framework.test import APIClient

from core.services.email import EmailConfigurationError, send_templated_email


def test_send_confirmation():
    r = APIClient().post(reverse('send_confirmation'), {
        'email': 'nuevo@maktub.test', 'name': 'Nuevo Usuario', 'confirmationUrl': 'https://app.maktub.test/confirm?t=1',
    }, format='json')
    assert r.status_code == 200
    assert r.data == {'success': True, 'message': 'Correo de confirmación enviado exitosamente'}
    assert len(mail.outbox) == 1
    msg = mail.outbox[0]
    assert msg.subject == 'Confirmación de registro - Sistema Maktub'
    assert 'https://app.maktub.test/confirm?t=1' in msg.body
    html, mimetype = msg.alternatives[0]
    assert mimetype == 'text/html'
    assert 'Nuevo Usuario' in html


def test_send_confirmation_invalid_payload():
    r = APIClient().post(reverse('send_confirmation'), {'email': 'no-es-correo', 'name': ''}, format='json')
    assert r.status_code == 400
    assert r.data['success'] is False
    assert 'email' in r.data['details']
    assert len(mail.outbox) == 0


def test_send_confirmation_without_smtp_credentials(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
    settings.EMAIL_HOST_USER = ''
    settings.EMAIL_HOST_PASSWORD = ''
    r = APIClient().post(reverse('send_confirmation'), {
        'email': 'nuevo@maktub.test', 'name': 'Nuevo', 'confirmationUrl': 'https://app.maktub.test/c',
    }, format='json')
    assert r.status_code == 500
    assert r.data['success'] is False


def test_missing_credentials_raise(settings):
    settings.EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
    settings.EMAIL_HOST_USER = ''
    with pytest.raises(EmailConfigurationError):
        send_templated_email(to='a@maktub.test', subject='x', template='core/email/confirmation.html', context={})


def test_from_header_uses_display_name(settings):
    settings.DEFAULT_FROM_NAME = 'Hospital Maktub'
    settings.EMAIL_HOST_USER = 'facturacion@maktub.test'
    send_templated_email(to='a@maktub.test', subject='Hola', template='core/email/confirmation.html',
                         context={'name': 'A', 'action_url': 'https://x.test'})
    assert mail.outbox[0].from_email == 'Hospital Maktub <facturacion@maktub.test>'


def test_send_confirmation_is_rate_limited():
    client = APIClient()
    payload = {'email': 'nuevo@maktub.test', 'name': 'Nuevo', 'confirmationUrl': 'https://app.maktub.test/c'}
    codes = [client.post(reverse('send_confirmation'), payload, format='json').status_code for _ in range(6)]
    assert codes == [200] * 5 + [429]
    assert len(mail.outbox) == 5
