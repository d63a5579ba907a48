import base64
import binascii
import io
import logging
import uuid
from typing import Optional

import bleach
from django.conf import settings
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.files.base import ContentFile
from django.db import transaction
from django.db.models import Count, Q
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from PIL import Image, UnidentifiedImageError
from rest_framework.exceptions import PermissionDenied, ValidationError

from core.models import Process, Profile
from core.permissions import ADMIN_ROLES
from core.services.audit import log_action
from core.services.email import send_invitation_email, send_password_reset_email

logger = logging.getLogger(__name__)

User = get_user_model()

# Fields a contractor must fill before billing documents can be produced
REQUIRED_PROFILE_FIELDS = [
    ('document_number', 'Número de documento'),
    ('document_issue_city', 'Ciudad de expedición'),
    ('phone', 'Teléfono'),
    ('address', 'Dirección'),
    ('bank_name', 'Banco'),
    ('bank_account', 'Número de cuenta'),
]

PROFILE_FIELDS = [
    'document_number', 'document_issue_city', 'phone', 'address', 'city',
    'bank_name', 'bank_account', 'bank_account_type', 'tax_regime', 'rut_activity_code',
]

INVITER_ROLES = {'super_admin', 'admin', 'supervisor'}


def clean_text(v) -> str:
    return bleach.clean((v or '').strip(), strip=True)


def get_profile(user) -> Profile:
    profile, _ = Profile.objects.get_or_create(user=user)
    return profile


def missing_profile_fields(profile: Profile) -> list[str]:
    return [label for field, label in REQUIRED_PROFILE_FIELDS if not (getattr(profile, field) or '').strip()]


def serialize_user(user, *, with_profile: bool = False) -> dict:
    data = {
        'id': user.id,
        'username': user.username,
        'email': user.email,
        'name': user.display_name,
        'role': user.role,
        'roleLabel': user.get_role_display(),
        'processId': user.process_id,
        'processName': user.process.name if user.process_id else None,
        'isActive': user.is_active,
        'mustSetPassword': user.must_set_password,
        'dateJoined': user.date_joined.isoformat() if user.date_joined else None,
    }
    if with_profile:
        profile = get_profile(user)
        missing = missing_profile_fields(profile)
        data['profile'] = serialize_profile(profile)
        data['profileComplete'] = not missing
        data['missingFields'] = missing
    return data


def _camel(name: str) -> str:
    head, *rest = name.split('_')
    return head + ''.join(p.title() for p in rest)


def serialize_profile(profile: Profile) -> dict:
    data = {_camel(f): getattr(profile, f) for f in PROFILE_FIELDS}
    data['avatarUrl'] = profile.avatar.url if profile.avatar else None
    data['signatureUrl'] = profile.signature.url if profile.signature else None
    data['hasSignature'] = bool(profile.signature)
    data['updatedAt'] = profile.updated_at.isoformat() if profile.updated_at else None
    return data


# ---------------------------------------------------------------------------
# Links for invitation / password reset
# ---------------------------------------------------------------------------

def build_set_password_link(user) -> str:
    uid = urlsafe_base64_encode(force_bytes(user.pk))
    token = default_token_generator.make_token(user)
    return f"{settings.FRONTEND_URL}/set-password?uid={uid}&token={token}"


def request_password_reset(email: str) -> bool:
    """Email a reset link when the address belongs to an active user.

    Returns whether a message was sent; callers must not reveal it.
    """
    user = User.objects.filter(email__iexact=(email or '').strip(), is_active=True).first()
    if not user:
        logger.info('password reset requested for unknown email')
        return False
    send_password_reset_email(user, build_set_password_link(user))
    try:
        log_action(user=user, action='password_reset_request', object_type='user', object_id=user.id)
    except Exception:
        pass
    return True


def set_password_from_token(uid: str, token: str, password: str):
    try:
        pk = force_str(urlsafe_base64_decode(uid))
        user = User.objects.get(pk=pk)
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        raise ValidationError({'uid': 'Enlace inválido'})
    if not default_token_generator.check_token(user, token):
        raise ValidationError({'token': 'El enlace es inválido o ha expirado'})
    try:
        validate_password(password, user=user)
    except DjangoValidationError as e:
        raise ValidationError({'password': e.messages})
    user.set_password(password)
    user.must_set_password = False
    user.is_active = True
    user.save(update_fields=['password', 'must_set_password', 'is_active'])
    try:
        log_action(user=user, action='password_set', object_type='user', object_id=user.id)
    except Exception:
        pass
    return user


# ---------------------------------------------------------------------------
# User administration
# ---------------------------------------------------------------------------

def _check_role_grant(actor, role: str) -> None:
    if role == 'super_admin' and actor.role != 'super_admin':
        raise PermissionDenied('Solo un super administrador puede asignar ese rol')
    if actor.role == 'supervisor' and role != 'employee':
        raise PermissionDenied('Un supervisor solo puede invitar empleados')


def _resolve_process(process_id) -> Optional[Process]:
    if not process_id:
        return None
    process = Process.objects.filter(id=process_id).first()
    if not process:
        raise ValidationError({'processId': 'Proceso no encontrado'})
    return process


def invite_user(actor, *, name: str, email: str, role: str, process_id=None):
    """Create an account without a usable password and email the invitation.

    The user is rolled back when the invitation cannot be delivered.
    """
    if getattr(actor, 'role', '') not in INVITER_ROLES:
        raise PermissionDenied('Permisos insuficientes')
    _check_role_grant(actor, role)
    email = (email or '').strip().lower()
    if User.objects.filter(Q(email__iexact=email) | Q(username__iexact=email)).exists():
        raise ValidationError({'email': 'Ya existe un usuario con ese correo'})
    process = _resolve_process(process_id)

    name = clean_text(name)
    first_name, _, last_name = name.partition(' ')
    with transaction.atomic():
        user = User(
            username=email, email=email, first_name=first_name[:150], last_name=last_name[:150],
            role=role, process=process, must_set_password=True,
        )
        user.set_unusable_password()
        user.save()
        Profile.objects.create(user=user)
        # raising here undoes the insert above
        send_invitation_email(user, build_set_password_link(user), invited_by=actor)

    try:
        log_action(user=actor, action='user_invite', object_type='user', object_id=user.id,
                   detail={'email': email, 'role': role})
    except Exception:
        pass
    return user


def update_user(actor, user, *, role=None, process_id=None, name=None, is_active=None, clear_process=False):
    if actor.role not in ADMIN_ROLES:
        raise PermissionDenied('Permisos insuficientes')
    if user.role == 'super_admin' and actor.role != 'super_admin':
        raise PermissionDenied('No puede modificar a un super administrador')
    changed = {}
    if role is not None and role != user.role:
        if user.pk == actor.pk:
            raise PermissionDenied('No puede cambiar su propio rol')
        _check_role_grant(actor, role)
        changed['role'] = {'old': user.role, 'new': role}
        user.role = role
    if clear_process:
        user.process = None
        changed['processId'] = None
    elif process_id is not None:
        user.process = _resolve_process(process_id)
        changed['processId'] = process_id
    if name is not None:
        first_name, _, last_name = clean_text(name).partition(' ')
        user.first_name, user.last_name = first_name[:150], last_name[:150]
        changed['name'] = user.display_name
    if is_active is not None and is_active != user.is_active:
        if user.pk == actor.pk and not is_active:
            raise PermissionDenied('No puede desactivar su propia cuenta')
        user.is_active = is_active
        changed['isActive'] = is_active
    user.save()
    try:
        log_action(user=actor, action='user_update', object_type='user', object_id=user.id, detail=changed)
    except Exception:
        pass
    return user


def delete_user(actor, user) -> None:
    if actor.role not in ADMIN_ROLES:
        raise PermissionDenied('Permisos insuficientes')
    if user.pk == actor.pk:
        raise PermissionDenied('No puede eliminar su propia cuenta')
    if user.role == 'super_admin' and actor.role != 'super_admin':
        raise PermissionDenied('No puede eliminar a un super administrador')
    uid, email = user.id, user.email
    user.delete()
    try:
        log_action(user=actor, action='user_delete', object_type='user', object_id=uid, detail={'email': email})
    except Exception:
        pass


def list_users(*, q: str = '', role: str = '', process_id=None):
    qs = User.objects.select_related('process').order_by('first_name', 'last_name', 'email')
    if q:
        qs = qs.filter(
            Q(email__icontains=q) | Q(first_name__icontains=q) | Q(last_name__icontains=q) | Q(username__icontains=q)
        )
    if role:
        qs = qs.filter(role=role)
    if process_id:
        qs = qs.filter(process_id=process_id)
    return qs


def user_stats() -> dict:
    counts = {r: 0 for r, _ in User.ROLE_CHOICES}
    for row in User.objects.values('role').annotate(n=Count('id')):
        counts[row['role']] = row['n']
    return {
        'total': sum(counts.values()),
        'active': User.objects.filter(is_active=True).count(),
        'pendingActivation': User.objects.filter(must_set_password=True).count(),
        'byRole': counts,
    }


# ---------------------------------------------------------------------------
# Profile & signature
# ---------------------------------------------------------------------------

def update_profile(user, data: dict) -> Profile:
    profile = get_profile(user)
    changed = []
    for field in PROFILE_FIELDS:
        if field in data and data[field] is not None:
            setattr(profile, field, clean_text(data[field]))
            changed.append(field)
    if data.get('name'):
        first_name, _, last_name = clean_text(data['name']).partition(' ')
        user.first_name, user.last_name = first_name[:150], last_name[:150]
        user.save(update_fields=['first_name', 'last_name'])
    profile.save()
    try:
        log_action(user=user, action='profile_update', object_type='profile', object_id=profile.id,
                   detail={'fields': changed})
    except Exception:
        pass
    return profile


SIGNATURE_FORMATS = {'PNG': 'png', 'JPEG': 'jpg'}


def _image_content(raw: bytes) -> tuple[bytes, str]:
    max_bytes = settings.UPLOAD_MAX_MB * 1024 * 1024
    if len(raw) > max_bytes:
        raise ValidationError({'signature': 'Archivo demasiado grande'})
    try:
        img = Image.open(io.BytesIO(raw))
        img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise ValidationError({'signature': 'La firma debe ser una imagen PNG o JPEG'})
    ext = SIGNATURE_FORMATS.get(img.format or '')
    if not ext:
        raise ValidationError({'signature': 'La firma debe ser una imagen PNG o JPEG'})
    return raw, ext


def decode_data_url(data_url: str) -> bytes:
    """Decode a canvas export such as ``data:image/png;base64,iVBOR...``."""
    header, sep, payload = (data_url or '').partition(',')
    if not sep or not header.startswith('data:image/') or ';base64' not in header:
        raise ValidationError({'dataUrl': 'Formato de imagen inválido'})
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError({'dataUrl': 'Imagen base64 inválida'})


def save_signature(user, *, data_url: Optional[str] = None, upload=None) -> Profile:
    if data_url:
        raw = decode_data_url(data_url)
    elif upload is not None:
        raw = upload.read()
    else:
        raise ValidationError({'signature': 'Debe enviar la firma'})
    content, ext = _image_content(raw)
    profile = get_profile(user)
    if profile.signature:
        profile.signature.delete(save=False)
    profile.signature.save(f"signature_{user.id}_{uuid.uuid4().hex[:8]}.{ext}", ContentFile(content), save=True)
    try:
        log_action(user=user, action='signature_update', object_type='profile', object_id=profile.id)
    except Exception:
        pass
    return profile


def delete_signature(user) -> Profile:
    profile = get_profile(user)
    if profile.signature:
        profile.signature.delete(save=False)
        profile.signature = None
        profile.save(update_fields=['signature', 'updated_at'])
    return profile


def save_avatar(user, upload) -> Profile:
    content, ext = _image_content(upload.read())
    profile = get_profile(user)
    if profile.avatar:
        profile.avatar.delete(save=False)
    profile.avatar.save(f"avatar_{user.id}_{uuid.uuid4().hex[:8]}.{ext}", ContentFile(content), save=True)
    return profile
