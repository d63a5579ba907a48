"""
Derived notifications. Nothing is stored or delivered; the list is rebuilt
from contract and billing state on every request.
"""
from __future__ import annotations

import datetime

from django.db.models import Q
from django.utils import timezone

from core.models import BillingAccount, Contract
from core.permissions import ADMIN_ROLES
from core.services.contracts import EXPIRING_WINDOW_DAYS

OWNER_STATUS_MESSAGES = {
    BillingAccount.STATUS_REJECTED: ('billing_rejected', 'Cuenta de cobro rechazada',
                                     'La cuenta {number} fue rechazada. Revisa las observaciones.'),
    BillingAccount.STATUS_APPROVED: ('billing_approved', 'Cuenta de cobro aprobada',
                                     'La cuenta {number} fue aprobada por el supervisor.'),
    BillingAccount.STATUS_PAID: ('billing_paid', 'Cuenta de cobro pagada', 'La cuenta {number} fue pagada.'),
}


def _item(kind: str, obj_id: int, title: str, message: str, created_at, link: str) -> dict:
    return {
        'id': f'{kind}-{obj_id}',
        'type': kind,
        'title': title,
        'message': message,
        'createdAt': created_at.isoformat() if created_at else None,
        'link': link,
    }


def _review_items(user) -> list[dict]:
    role = getattr(user, 'role', '')
    qs = BillingAccount.objects.select_related('contract').filter(status=BillingAccount.STATUS_PENDING)
    if role == 'supervisor':
        qs = qs.filter(contract__supervisor=user)
    elif role not in ADMIN_ROLES:
        return []
    return [
        _item('billing_pending_review', a.id, 'Cuenta pendiente de revisión',
              f'La cuenta {a.account_number} del contrato {a.contract.contract_number} espera revisión.',
              a.submitted_at or a.updated_at, f'/billing/{a.id}')
        for a in qs.order_by('submitted_at')[:50]
    ]


def _owner_items(user, since: datetime.datetime) -> list[dict]:
    items = []
    accounts = (
        BillingAccount.objects.filter(Q(created_by=user) | Q(contract__contractor=user))
        .filter(status__in=OWNER_STATUS_MESSAGES.keys(), updated_at__gte=since)
        .order_by('-updated_at')[:50]
    )
    for a in accounts:
        kind, title, message = OWNER_STATUS_MESSAGES[a.status]
        items.append(_item(kind, a.id, title, message.format(number=a.account_number),
                           a.reviewed_at or a.paid_at or a.updated_at, f'/billing/{a.id}'))
    contracts = (
        Contract.objects.filter(Q(created_by=user) | Q(contractor=user))
        .filter(state=Contract.STATE_RETURNED, updated_at__gte=since)
        .order_by('-updated_at')[:50]
    )
    for c in contracts:
        items.append(_item('contract_returned', c.id, 'Contrato devuelto',
                           f'El contrato {c.contract_number} fue devuelto: {c.return_comments}',
                           c.updated_at, f'/contracts/{c.id}'))
    return items


def _expiring_items(user, today: datetime.date) -> list[dict]:
    if getattr(user, 'role', '') not in ADMIN_ROLES:
        return []
    limit = today + datetime.timedelta(days=EXPIRING_WINDOW_DAYS)
    qs = Contract.objects.filter(
        state=Contract.STATE_IN_EXECUTION, end_date__gte=today, end_date__lte=limit,
    ).order_by('end_date')[:50]
    return [
        _item('contract_expiring', c.id, 'Contrato próximo a vencer',
              f'El contrato {c.contract_number} vence el {c.end_date:%d/%m/%Y}.',
              c.updated_at, f'/contracts/{c.id}')
        for c in qs
    ]


def notifications_for(user, *, days: int = 30) -> list[dict]:
    """Notifications visible to ``user``, newest first."""
    now = timezone.now()
    since = now - datetime.timedelta(days=days)
    items = _review_items(user) + _owner_items(user, since) + _expiring_items(user, timezone.localdate())
    items.sort(key=lambda i: i['createdAt'] or '', reverse=True)
    return items
