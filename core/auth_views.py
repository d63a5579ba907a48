"""
Authentication views and helper functions.

This module defines the login endpoint used by the front-end, JWT
refresh/logout, the password reset flow and ``me``.  By isolating these
views from the authentication class (see ``core.authentication``) we
prevent circular imports when Django REST framework initialises
authentication classes.
"""
from __future__ import annotations

import logging
import smtplib

from django.contrib.auth import authenticate
from django.db.models import Q
from rest_framework_simplejwt.tokens import RefreshToken
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.views import TokenRefreshView
from rest_framework_simplejwt.token_blacklist.models import BlacklistedToken, OutstandingToken
from rest_framework.authtoken.models import Token
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from core.serializers.auth import LoginSerializer, PasswordResetRequestSerializer, SetPasswordSerializer
from core.services.audit import log_action
from core.services.email import EmailConfigurationError
from core.services.users import request_password_reset, serialize_user, set_password_from_token
from core.throttling import throttle_scope

from .models import User

logger = logging.getLogger(__name__)


def _resolve_username(identifier: str) -> str:
    """Map an email to its username; plain usernames pass through."""
    if '@' in identifier:
        user = User.objects.filter(Q(email__iexact=identifier) | Q(username__iexact=identifier)).first()
        if user:
            return user.get_username()
    return identifier


# ---------------------------------------------------------------------
# Username/email + password login
# ---------------------------------------------------------------------
@throttle_scope('login')
@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    """
    Login with username or email and password.
    Accepts fields:
      - username or email
      - password
    """
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    identifier = vd['identifier']
    user = authenticate(request, username=_resolve_username(identifier), password=vd['password'])
    if not user:
        try:
            log_action(user=None, action='login', object_type='user', object_id=None,
                       detail={'result': 'fail', 'username': identifier, 'ip': request.META.get('REMOTE_ADDR')})
        except Exception:
            pass
        return Response({'ok': False, 'error': {'code': 'invalid_credentials',
                                                'message': 'Usuario o contraseña incorrectos'}}, status=400)

    try:
        log_action(user=user, action='login', object_type='user', object_id=user.id,
                   detail={'result': 'ok', 'ip': request.META.get('REMOTE_ADDR')})
    except Exception:
        pass

    # legacy token
    token_obj, _ = Token.objects.get_or_create(user=user)
    refresh = RefreshToken.for_user(user)

    payload: dict[str, object] = {
        'ok': True,
        'token': token_obj.key,
        'jwt_access': str(refresh.access_token),
        'jwt_refresh': str(refresh),
        'role': user.role,
        'user': serialize_user(user, with_profile=True),
    }
    return Response(payload, status=200)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me_view(request):
    return Response({'ok': True, 'data': serialize_user(request.user, with_profile=True)})


# ---------------------------------------------------------------------
# Password reset / invitation acceptance
# ---------------------------------------------------------------------
@throttle_scope('password_reset')
@api_view(['POST'])
@permission_classes([AllowAny])
def password_reset_request_view(request):
    s = PasswordResetRequestSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    try:
        request_password_reset(s.validated_data['email'])
    except (EmailConfigurationError, smtplib.SMTPException, OSError) as e:
        logger.error('password reset email failed: %s', e)
    # same answer whether or not the address exists
    return Response({'ok': True, 'message': 'Si el correo está registrado recibirás un enlace para restablecer tu contraseña'})


@throttle_scope('password_reset')
@api_view(['POST'])
@permission_classes([AllowAny])
def set_password_view(request):
    s = SetPasswordSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    set_password_from_token(vd['uid'], vd['token'], vd['password'])
    return Response({'ok': True})


# ---------------------------------------------------------------------
# JWT: refresh & logout
# ---------------------------------------------------------------------
@api_view(['POST'])
@permission_classes([AllowAny])
def jwt_refresh_view(request):
    """Return a new access token from refresh token."""
    view = TokenRefreshView.as_view()
    resp = view(request._request)
    if isinstance(resp, Response):
        data = dict(resp.data)
        if 'access' in data and 'jwt_access' not in data:
            data['jwt_access'] = data.pop('access')
        return Response(data, status=resp.status_code)
    return resp


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def jwt_logout_view(request):
    """Blacklist current user's refresh tokens (all or a given one)."""
    refresh = request.data.get('refresh')
    count = 0
    if refresh:
        try:
            RefreshToken(refresh).blacklist()
            count = 1
        except TokenError as e:
            return Response({'ok': False, 'error': {'code': 'invalid_token', 'message': str(e)}}, status=400)
    else:
        for token in OutstandingToken.objects.filter(user=request.user):
            _, created = BlacklistedToken.objects.get_or_create(token=token)
            count += int(created)
    Token.objects.filter(user=request.user).delete()
    return Response({'ok': True, 'blacklisted': count})
