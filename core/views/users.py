"""
User administration: invitations, role and process assignment, processes.
"""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound, ValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import Process
from core.permissions import AdminWriteOrReadOnly, IsAdminRole
from core.serializers.users import InviteUserSerializer, ProcessSerializer, UpdateUserSerializer, UserListQuerySerializer
from core.services import users as svc
from core.services.audit import log_action
from core.views.common import paginate

User = get_user_model()


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def users(request):
    if request.method == 'POST':
        s = InviteUserSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        user = svc.invite_user(request.user, name=vd['name'], email=vd['email'], role=vd['role'],
                               process_id=vd.get('processId'))
        return Response({'ok': True, 'data': svc.serialize_user(user)}, status=201)

    if getattr(request.user, 'role', '') not in svc.INVITER_ROLES:
        return Response({'ok': False, 'error': {'code': 'api_error', 'message': 'Permisos insuficientes'}}, status=403)
    q = UserListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.list_users(q=vd.get('q', ''), role=vd.get('role', ''), process_id=vd.get('processId'))
    items, pagination = paginate(qs, vd, default_size=50)
    return Response({'ok': True, 'data': [svc.serialize_user(u) for u in items], 'pagination': pagination})


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, user_id: int):
    user = User.objects.select_related('process').filter(id=user_id).first()
    if not user:
        raise NotFound('Usuario no encontrado')
    if request.method == 'DELETE':
        svc.delete_user(request.user, user)
        return Response({'ok': True})
    if request.method == 'PATCH':
        s = UpdateUserSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        user = svc.update_user(
            request.user, user,
            role=vd.get('role'), name=vd.get('name'), is_active=vd.get('isActive'),
            process_id=vd.get('processId'),
            clear_process='processId' in vd and vd['processId'] is None,
        )
    return Response({'ok': True, 'data': svc.serialize_user(user, with_profile=True)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_stats(request):
    return Response({'ok': True, 'data': svc.user_stats()})


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------

def _serialize_process(p: Process) -> dict:
    return {
        'id': p.id,
        'name': p.name,
        'description': p.description,
        'userCount': getattr(p, 'user_count', None),
        'createdAt': p.created_at.isoformat(),
    }


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, AdminWriteOrReadOnly])
def processes(request):
    if request.method == 'POST':
        s = ProcessSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        name = svc.clean_text(s.validated_data['name'])
        if Process.objects.filter(name__iexact=name).exists():
            raise ValidationError({'name': 'Ya existe un proceso con ese nombre'})
        p = Process.objects.create(name=name, description=svc.clean_text(s.validated_data.get('description')))
        try:
            log_action(user=request.user, action='process_create', object_type='process', object_id=p.id,
                       detail={'name': name})
        except Exception:
            pass
        return Response({'ok': True, 'data': _serialize_process(p)}, status=201)

    qs = Process.objects.annotate(user_count=Count('users'))
    term = (request.query_params.get('q') or '').strip()
    if term:
        qs = qs.filter(Q(name__icontains=term) | Q(description__icontains=term))
    return Response({'ok': True, 'data': [_serialize_process(p) for p in qs]})


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def process_detail(request, process_id: int):
    p = Process.objects.filter(id=process_id).first()
    if not p:
        raise NotFound('Proceso no encontrado')
    if request.method == 'DELETE':
        pid, name = p.id, p.name
        p.delete()
        try:
            log_action(user=request.user, action='process_delete', object_type='process', object_id=pid,
                       detail={'name': name})
        except Exception:
            pass
        return Response({'ok': True})
    s = ProcessSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    if 'name' in s.validated_data:
        name = svc.clean_text(s.validated_data['name'])
        if Process.objects.filter(name__iexact=name).exclude(id=p.id).exists():
            raise ValidationError({'name': 'Ya existe un proceso con ese nombre'})
        p.name = name
    if 'description' in s.validated_data:
        p.description = svc.clean_text(s.validated_data['description'])
    p.save()
    return Response({'ok': True, 'data': _serialize_process(p)})
