"""
Confirmation email relay.

Kept outside the ``{ok, error}`` envelope: the registration front-end
expects ``{success, message}`` / ``{success, error}``.
"""
from __future__ import annotations

import logging
import smtplib

from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.serializers.auth import ConfirmationEmailSerializer
from core.services.email import EmailConfigurationError, send_confirmation_email
from core.throttling import throttle_scope

logger = logging.getLogger(__name__)


@throttle_scope('confirmation_email')
@api_view(['POST'])
@permission_classes([AllowAny])
def send_confirmation(request):
    s = ConfirmationEmailSerializer(data=request.data)
    if not s.is_valid():
        return Response({'success': False, 'error': 'Datos inválidos', 'details': s.errors}, status=400)
    vd = s.validated_data
    try:
        send_confirmation_email(vd['email'], vd['name'], vd['confirmationUrl'])
    except (EmailConfigurationError, smtplib.SMTPException, OSError) as e:
        logger.error('confirmation email to %s failed: %s', vd['email'], e)
        return Response({'success': False, 'error': str(e)}, status=500)
    return Response({'success': True, 'message': 'Correo de confirmación enviado exitosamente'})
