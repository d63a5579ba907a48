from typing import Optional, Any, Dict
from django.contrib.auth import get_user_model
from core.models import AuditEvent

User = get_user_model()


def log_action(*, user: Optional[User], action: str, object_type: Optional[str]=None, object_id: Optional[int]=None, detail: Optional[Dict[str, Any]]=None) -> AuditEvent:
    return AuditEvent.objects.create(
        user=user if isinstance(user, User) and user.pk else None,
        action=action,
        object_type=object_type, object_id=object_id,
        detail=detail or {},
    )


def recent_activity(*, object_type: Optional[str]=None, object_id: Optional[int]=None, limit: int=50):
    qs = AuditEvent.objects.select_related('user').order_by('-created_at', '-id')
    if object_type:
        qs = qs.filter(object_type=object_type)
    if object_id is not None:
        qs = qs.filter(object_id=object_id)
    return [{
        'id': e.id,
        'action': e.action,
        'objectType': e.object_type,
        'objectId': e.object_id,
        'detail': e.detail,
        'user': e.user.display_name if e.user else None,
        'createdAt': e.created_at.isoformat(),
    } for e in qs[:limit]]
