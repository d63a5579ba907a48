"""
Outgoing email: confirmation, invitation and password reset messages.

Messages are rendered from the templates under ``core/email/`` and relayed
through Django's configured email backend (SMTP in production).
"""
from __future__ import annotations

import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)

SMTP_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'

CONFIRMATION_SUBJECT = 'Confirmación de registro - Sistema Maktub'
INVITATION_SUBJECT = 'Invitación al Sistema Maktub'
PASSWORD_RESET_SUBJECT = 'Restablecer contraseña - Sistema Maktub'


class EmailConfigurationError(ImproperlyConfigured):
    pass


def _from_address() -> str:
    address = settings.EMAIL_HOST_USER or settings.DEFAULT_FROM_EMAIL
    return f'{settings.DEFAULT_FROM_NAME} <{address}>'


def _check_smtp_credentials() -> None:
    if settings.EMAIL_BACKEND != SMTP_BACKEND:
        return
    if not settings.EMAIL_HOST_USER or not settings.EMAIL_HOST_PASSWORD:
        raise EmailConfigurationError('SMTP credentials not configured')


def send_templated_email(*, to: str, subject: str, template: str, context: dict, intro_text: str = '') -> None:
    """Render ``template`` and send it as a multipart text+HTML message.

    Raises on any delivery failure; callers decide whether that is fatal.
    """
    _check_smtp_credentials()
    ctx = dict(context, subject=subject)
    html = render_to_string(template, ctx)
    text = render_to_string('core/email/plain.txt', dict(ctx, intro=intro_text))
    msg = EmailMultiAlternatives(subject=subject, body=text, from_email=_from_address(), to=[to])
    msg.attach_alternative(html, 'text/html')
    logger.info('sending "%s" to %s', subject, to)
    msg.send(fail_silently=False)


def send_confirmation_email(email: str, name: str, confirmation_url: str) -> None:
    send_templated_email(
        to=email,
        subject=CONFIRMATION_SUBJECT,
        template='core/email/confirmation.html',
        context={'name': name, 'action_url': confirmation_url},
        intro_text='Para completar tu registro confirma tu dirección de correo electrónico en el siguiente enlace:',
    )


def _valid_days() -> int:
    return max(1, settings.PASSWORD_RESET_TIMEOUT // 86400)


def send_invitation_email(user, link: str, invited_by=None) -> None:
    send_templated_email(
        to=user.email,
        subject=INVITATION_SUBJECT,
        template='core/email/invitation.html',
        context={
            'name': user.display_name,
            'action_url': link,
            'role': user.get_role_display(),
            'invited_by': getattr(invited_by, 'display_name', None) or 'El administrador',
            'valid_days': _valid_days(),
        },
        intro_text='Se creó una cuenta para ti. Define tu contraseña en el siguiente enlace:',
    )


def send_password_reset_email(user, link: str) -> None:
    send_templated_email(
        to=user.email,
        subject=PASSWORD_RESET_SUBJECT,
        template='core/email/password_reset.html',
        context={'name': user.display_name, 'action_url': link, 'valid_days': _valid_days()},
        intro_text='Para definir una nueva contraseña abre el siguiente enlace:',
    )
