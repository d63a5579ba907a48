"""
Contract lifecycle: numbering, scoping, edits with change tracking and
the state machine driving the actions menu.
"""
from __future__ import annotations

import datetime
import logging
from decimal import Decimal
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import Avg, Count, F, Q, Sum
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import InvalidTransition
from core.models import Contract, ContractDocument, ContractPayment, ContractStateHistory
from core.permissions import ADMIN_ROLES, REVIEWER_ROLES
from core.services.audit import log_action
from core.services.exports import build_xlsx
from core.services.realtime import broadcast_refresh

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Contract.STATE_REGISTERED: (Contract.STATE_IN_EXECUTION, Contract.STATE_RETURNED, Contract.STATE_CANCELLED),
    Contract.STATE_RETURNED: (Contract.STATE_IN_EXECUTION, Contract.STATE_CANCELLED),
    Contract.STATE_IN_EXECUTION: (Contract.STATE_COMPLETED, Contract.STATE_CANCELLED),
    Contract.STATE_COMPLETED: (),
    Contract.STATE_CANCELLED: (),
}

ACTION_LABELS = {
    Contract.STATE_IN_EXECUTION: 'Poner en ejecución',
    Contract.STATE_RETURNED: 'Devolver para corrección',
    Contract.STATE_COMPLETED: 'Marcar como completado',
    Contract.STATE_CANCELLED: 'Cancelar contrato',
}

# Labels shown next to each tracked change in the history timeline
FIELD_LABELS = {
    'contract_number_original': 'Número de contrato original',
    'contract_type': 'Tipo de contrato',
    'client_name': 'Contratista',
    'client_document_number': 'Documento',
    'client_email': 'Correo',
    'client_phone': 'Teléfono',
    'client_address': 'Dirección',
    'client_bank_name': 'Banco',
    'client_account_number': 'Número de cuenta',
    'description': 'Objeto del contrato',
    'total_amount': 'Valor total',
    'addition_amount': 'Valor adición',
    'hourly_rate': 'Valor hora',
    'start_date': 'Fecha de inicio',
    'end_date': 'Fecha de terminación',
    'area_responsible': 'Área responsable',
    'cdp': 'CDP',
    'rp': 'RP',
    'contractor_id': 'Contratista asignado',
    'supervisor_id': 'Supervisor',
}

EXPIRING_WINDOW_DAYS = 15


def is_admin(user) -> bool:
    return getattr(user, 'role', '') in ADMIN_ROLES


def is_owner(user, contract: Contract) -> bool:
    return bool(user and user.pk and user.pk in (contract.created_by_id, contract.contractor_id))


# ---------------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------------

def next_contract_number(today: Optional[datetime.date] = None) -> str:
    today = today or timezone.localdate()
    prefix = f"CON-{today:%Y%m}-"
    last = (
        Contract.objects.filter(contract_number__startswith=prefix)
        .order_by('-contract_number').values_list('contract_number', flat=True).first()
    )
    seq = 1
    if last:
        try:
            seq = int(last.rsplit('-', 1)[1]) + 1
        except (IndexError, ValueError):
            seq = Contract.objects.filter(contract_number__startswith=prefix).count() + 1
    return f"{prefix}{seq:03d}"


# ---------------------------------------------------------------------------
# Scoping & lookups
# ---------------------------------------------------------------------------

def scope_contracts(user, qs=None):
    qs = Contract.objects.all() if qs is None else qs
    role = getattr(user, 'role', '')
    if role in ADMIN_ROLES:
        return qs
    if role == 'supervisor':
        return qs.filter(Q(supervisor=user) | Q(created_by=user))
    return qs.filter(Q(contractor=user) | Q(created_by=user))


def get_contract_for_user(user, contract_id) -> Contract:
    contract = Contract.objects.select_related('contractor', 'supervisor', 'created_by').filter(id=contract_id).first()
    if not contract:
        raise NotFound('Contrato no encontrado')
    if not scope_contracts(user, Contract.objects.filter(id=contract.id)).exists():
        raise PermissionDenied('No tiene acceso a este contrato')
    return contract


def filter_contracts(qs, params: dict):
    q = (params.get('q') or '').strip()
    if q:
        qs = qs.filter(
            Q(contract_number__icontains=q) | Q(contract_number_original__icontains=q)
            | Q(client_name__icontains=q) | Q(description__icontains=q)
            | Q(client_document_number__icontains=q)
        )
    if params.get('client'):
        qs = qs.filter(client_name__icontains=params['client'])
    if params.get('type'):
        qs = qs.filter(contract_type=params['type'])
    if params.get('state'):
        qs = qs.filter(state=params['state'])
    if params.get('startFrom'):
        qs = qs.filter(start_date__gte=params['startFrom'])
    if params.get('endTo'):
        qs = qs.filter(end_date__lte=params['endTo'])
    if params.get('minAmount') is not None:
        qs = qs.filter(total_amount__gte=params['minAmount'])
    if params.get('maxAmount') is not None:
        qs = qs.filter(total_amount__lte=params['maxAmount'])
    if params.get('supervisorId'):
        qs = qs.filter(supervisor_id=params['supervisorId'])
    return qs


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def _user_ref(user):
    if not user:
        return None
    return {'id': user.id, 'name': user.display_name, 'email': user.email}


def _file_url(f):
    return f.url if f else None


def serialize_contract(c: Contract, *, user=None) -> dict:
    data = {
        'id': c.id,
        'contractNumber': c.contract_number,
        'contractNumberOriginal': c.contract_number_original,
        'contractType': c.contract_type,
        'contractTypeLabel': c.get_contract_type_display(),
        'clientName': c.client_name,
        'clientDocumentNumber': c.client_document_number,
        'clientEmail': c.client_email,
        'clientPhone': c.client_phone,
        'clientAddress': c.client_address,
        'clientBankName': c.client_bank_name,
        'clientAccountNumber': c.client_account_number,
        'description': c.description,
        'totalAmount': c.total_amount,
        'additionAmount': c.addition_amount,
        'totalValue': c.total_value,
        'hourlyRate': c.hourly_rate,
        'startDate': c.start_date,
        'endDate': c.end_date,
        'state': c.state,
        'stateLabel': c.get_state_display(),
        'returnComments': c.return_comments,
        'areaResponsible': c.area_responsible,
        'cdp': c.cdp,
        'rp': c.rp,
        'contractor': _user_ref(c.contractor),
        'supervisor': _user_ref(c.supervisor),
        'createdBy': _user_ref(c.created_by),
        'signedDocumentUrl': _file_url(c.signed_document),
        'bankCertificationUrl': _file_url(c.bank_certification),
        'createdAt': c.created_at.isoformat() if c.created_at else None,
        'updatedAt': c.updated_at.isoformat() if c.updated_at else None,
    }
    if user is not None:
        data['availableActions'] = available_actions(c, user)
        data['canEdit'] = can_edit(user, c)
    return data


def serialize_history(h: ContractStateHistory) -> dict:
    return {
        'id': h.id,
        'contractId': h.contract_id,
        'fromState': h.from_state,
        'toState': h.to_state,
        'changedBy': _user_ref(h.changed_by),
        'comments': h.comments,
        'fieldChanges': h.field_changes,
        'createdAt': h.created_at.isoformat(),
    }


def serialize_document(d: ContractDocument) -> dict:
    return {
        'id': d.id, 'name': d.name, 'url': _file_url(d.file), 'contentType': d.content_type,
        'size': d.size, 'createdAt': d.created_at.isoformat(),
    }


def serialize_payment(p: ContractPayment) -> dict:
    return {
        'id': p.id, 'contractId': p.contract_id, 'amount': p.amount, 'paymentDate': p.payment_date,
        'paymentMethod': p.payment_method, 'referenceNumber': p.reference_number, 'notes': p.notes,
        'createdAt': p.created_at.isoformat(),
    }


# ---------------------------------------------------------------------------
# Create / update
# ---------------------------------------------------------------------------

def _validate_amounts_and_dates(data: dict, contract: Optional[Contract] = None) -> None:
    start = data.get('start_date', getattr(contract, 'start_date', None))
    end = data.get('end_date', getattr(contract, 'end_date', None))
    if start and end and end < start:
        raise ValidationError({'endDate': 'La fecha de terminación debe ser posterior a la de inicio'})
    total = data.get('total_amount', getattr(contract, 'total_amount', None))
    if total is None or Decimal(total) <= 0:
        raise ValidationError({'totalAmount': 'El valor total debe ser mayor a cero'})
    if Decimal(data.get('addition_amount') or 0) < 0:
        raise ValidationError({'additionAmount': 'La adición no puede ser negativa'})


def create_contract(user, data: dict) -> Contract:
    _validate_amounts_and_dates(data)
    data = dict(data)
    number = (data.pop('contract_number', '') or '').strip()
    if number and Contract.objects.filter(contract_number=number).exists():
        raise ValidationError({'contractNumber': 'Ya existe un contrato con ese número'})
    if not data.get('contractor') and getattr(user, 'role', '') == 'employee':
        data['contractor'] = user

    for attempt in range(3):
        try:
            with transaction.atomic():
                contract = Contract.objects.create(
                    contract_number=number or next_contract_number(),
                    created_by=user,
                    state=Contract.STATE_REGISTERED,
                    **data,
                )
                ContractStateHistory.objects.create(
                    contract=contract, from_state=None, to_state=Contract.STATE_REGISTERED,
                    changed_by=user, comments='Contrato registrado',
                )
            break
        except IntegrityError:
            # concurrent request took the same generated number
            if number or attempt == 2:
                raise ValidationError({'contractNumber': 'No fue posible asignar un número de contrato'})

    try:
        log_action(user=user, action='contract_create', object_type='contract', object_id=contract.id,
                   detail={'number': contract.contract_number})
    except Exception:
        pass
    logger.info('contract %s created by %s', contract.contract_number, user.pk)
    broadcast_refresh('contract', contract.id, contract.state)
    return contract


def can_edit(user, contract: Contract) -> bool:
    if contract.state in Contract.TERMINAL_STATES:
        return False
    if is_admin(user):
        return True
    if getattr(user, 'role', '') == 'supervisor' and contract.supervisor_id == user.pk:
        return contract.state in (Contract.STATE_REGISTERED, Contract.STATE_RETURNED)
    return is_owner(user, contract) and contract.state in (Contract.STATE_REGISTERED, Contract.STATE_RETURNED)


def _jsonable(v):
    if isinstance(v, (Decimal, datetime.date)):
        return str(v)
    return v


def update_contract(user, contract: Contract, data: dict) -> Contract:
    if not can_edit(user, contract):
        raise PermissionDenied('El contrato no puede editarse en su estado actual')
    data = dict(data)
    data.pop('contract_number', None)
    for rel in ('contractor', 'supervisor'):
        if rel in data:
            obj = data.pop(rel)
            data[f'{rel}_id'] = obj.pk if obj else None
    _validate_amounts_and_dates(data, contract)

    changes = {}
    for field, new in data.items():
        old = getattr(contract, field)
        if old != new:
            changes[field] = {'old': _jsonable(old), 'new': _jsonable(new), 'label': FIELD_LABELS.get(field, field)}
            setattr(contract, field, new)
    if not changes:
        return contract

    from_state = contract.state
    # the owner fixing a returned contract sends it back for registration review
    if from_state == Contract.STATE_RETURNED and is_owner(user, contract):
        contract.state = Contract.STATE_REGISTERED
    with transaction.atomic():
        contract.save()
        ContractStateHistory.objects.create(
            contract=contract, from_state=from_state, to_state=contract.state, changed_by=user,
            comments='Contrato editado', field_changes=changes,
        )
    try:
        log_action(user=user, action='contract_update', object_type='contract', object_id=contract.id,
                   detail={'fields': sorted(changes)})
    except Exception:
        pass
    if contract.state != from_state:
        broadcast_refresh('contract', contract.id, contract.state)
    return contract


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def can_change_state(user, contract: Contract) -> bool:
    role = getattr(user, 'role', '')
    if role not in REVIEWER_ROLES:
        return False
    if role == 'supervisor':
        return user.pk in (contract.supervisor_id, contract.created_by_id)
    return True


def available_actions(contract: Contract, user) -> list[dict]:
    if not can_change_state(user, contract):
        return []
    return [
        {'state': to, 'label': ACTION_LABELS[to], 'requiresComments': to == Contract.STATE_RETURNED}
        for to in TRANSITIONS.get(contract.state, ())
    ]


def change_state(user, contract: Contract, to_state: str, comments: str = '') -> Contract:
    if not can_change_state(user, contract):
        raise PermissionDenied('No tiene permisos para cambiar el estado de este contrato')
    from_state = contract.state
    if to_state not in TRANSITIONS.get(from_state, ()):
        raise InvalidTransition(f'No se puede pasar de {from_state} a {to_state}')
    comments = (comments or '').strip()
    if to_state == Contract.STATE_RETURNED and not comments:
        raise ValidationError({'comments': 'Debe indicar el motivo de la devolución'})

    with transaction.atomic():
        locked = Contract.objects.select_for_update().get(pk=contract.pk)
        if locked.state != from_state:
            raise InvalidTransition('El contrato cambió de estado, recargue e intente de nuevo')
        locked.state = to_state
        update_fields = ['state', 'updated_at']
        if to_state == Contract.STATE_RETURNED:
            locked.return_comments = comments
            update_fields.append('return_comments')
        locked.save(update_fields=update_fields)
        ContractStateHistory.objects.create(
            contract=locked, from_state=from_state, to_state=to_state, changed_by=user, comments=comments,
        )
    contract.refresh_from_db()

    try:
        log_action(user=user, action=f'state_change_{to_state}', object_type='contract', object_id=contract.id,
                   detail={'from': from_state, 'to': to_state, 'comments': comments})
    except Exception:
        pass
    logger.info('contract %s: %s -> %s by %s', contract.contract_number, from_state, to_state, user.pk)
    broadcast_refresh('contract', contract.id, to_state)
    return contract


def refresh_contract_states(today: Optional[datetime.date] = None) -> int:
    """Complete every contract in execution whose end date has passed."""
    today = today or timezone.localdate()
    expired = list(Contract.objects.filter(state=Contract.STATE_IN_EXECUTION, end_date__lt=today))
    for contract in expired:
        with transaction.atomic():
            contract.state = Contract.STATE_COMPLETED
            contract.save(update_fields=['state', 'updated_at'])
            ContractStateHistory.objects.create(
                contract=contract, from_state=Contract.STATE_IN_EXECUTION, to_state=Contract.STATE_COMPLETED,
                changed_by=None, comments='Finalizado automáticamente por vencimiento del plazo',
            )
        broadcast_refresh('contract', contract.id, contract.state)
    if expired:
        logger.info('completed %d expired contracts', len(expired))
    return len(expired)


# ---------------------------------------------------------------------------
# History, stats & export
# ---------------------------------------------------------------------------

def history_for(user, *, contract_id=None, state: str = ''):
    qs = ContractStateHistory.objects.select_related('contract', 'changed_by').filter(
        contract__in=scope_contracts(user)
    )
    if contract_id:
        qs = qs.filter(contract_id=contract_id)
    if state:
        qs = qs.filter(to_state=state)
    return qs.order_by('-created_at', '-id')


def contract_stats(qs) -> dict:
    agg = qs.aggregate(
        total=Count('id'),
        value=Sum(F('total_amount') + F('addition_amount')),
        average=Avg('total_amount'),
    )
    by_state = {s: 0 for s, _ in Contract.STATE_CHOICES}
    for row in qs.values('state').annotate(n=Count('id')):
        by_state[row['state']] = row['n']
    by_type = {t: 0 for t, _ in Contract.TYPE_CHOICES}
    for row in qs.values('contract_type').annotate(n=Count('id')):
        by_type[row['contract_type']] = row['n']
    today = timezone.localdate()
    expiring = qs.filter(
        state=Contract.STATE_IN_EXECUTION,
        end_date__gte=today, end_date__lte=today + datetime.timedelta(days=EXPIRING_WINDOW_DAYS),
    ).count()
    return {
        'total': agg['total'] or 0,
        'totalValue': agg['value'] or Decimal('0'),
        'averageValue': round(agg['average'] or Decimal('0'), 2),
        'byState': by_state,
        'byType': by_type,
        'expiringSoon': expiring,
    }


def export_contracts_xlsx(qs) -> bytes:
    headers = [
        'Número', 'Número original', 'Tipo', 'Contratista', 'Documento', 'Objeto', 'Valor total',
        'Adición', 'Fecha inicio', 'Fecha fin', 'Estado', 'Supervisor', 'CDP', 'RP',
    ]
    rows = (
        [
            c.contract_number, c.contract_number_original, c.get_contract_type_display(), c.client_name,
            c.client_document_number, c.description, float(c.total_amount), float(c.addition_amount or 0),
            c.start_date, c.end_date, c.get_state_display(),
            c.supervisor.display_name if c.supervisor else '', c.cdp, c.rp,
        ]
        for c in qs.select_related('supervisor').order_by('-created_at')
    )
    return build_xlsx('Contratos', headers, rows)


def export_history_xlsx(qs) -> bytes:
    states = dict(Contract.STATE_CHOICES)
    headers = ['Fecha', 'Contrato', 'Estado anterior', 'Estado nuevo', 'Usuario', 'Comentarios', 'Campos modificados']
    rows = (
        [
            timezone.localtime(h.created_at).strftime('%Y-%m-%d %H:%M'),
            h.contract.contract_number,
            states.get(h.from_state, h.from_state or ''),
            states.get(h.to_state, h.to_state),
            h.changed_by.display_name if h.changed_by else 'Sistema',
            h.comments,
            ', '.join(v.get('label', k) for k, v in (h.field_changes or {}).items()),
        ]
        for h in qs
    )
    return build_xlsx('Historial', headers, rows)


# ---------------------------------------------------------------------------
# Files & payments
# ---------------------------------------------------------------------------

def check_upload(f) -> str:
    size_mb = (f.size or 0) / (1024 * 1024)
    if size_mb > settings.UPLOAD_MAX_MB:
        raise ValidationError({'file': 'Archivo demasiado grande'})
    ctype = getattr(f, 'content_type', '') or ''
    if not any(ctype.startswith(prefix) for prefix in settings.ALLOWED_UPLOAD_TYPES):
        raise ValidationError({'file': 'Tipo de archivo no permitido'})
    return ctype


CONTRACT_FILE_KINDS = ('signed_document', 'bank_certification', 'document')


def attach_file(user, contract: Contract, kind: str, f, name: str = ''):
    if kind not in CONTRACT_FILE_KINDS:
        raise ValidationError({'kind': 'Tipo de documento inválido'})
    if not (can_edit(user, contract) or can_change_state(user, contract)):
        raise PermissionDenied('No puede adjuntar archivos a este contrato')
    ctype = check_upload(f)
    if kind == 'document':
        doc = ContractDocument.objects.create(
            contract=contract, name=name or f.name, file=f, content_type=ctype, size=f.size or 0, uploaded_by=user,
        )
        result = serialize_document(doc)
    else:
        field = getattr(contract, kind)
        if field:
            field.delete(save=False)
        setattr(contract, kind, f)
        contract.save(update_fields=[kind, 'updated_at'])
        result = {'kind': kind, 'url': getattr(contract, kind).url}
    try:
        log_action(user=user, action='contract_file_upload', object_type='contract', object_id=contract.id,
                   detail={'kind': kind})
    except Exception:
        pass
    return result


def add_payment(user, contract: Contract, data: dict) -> ContractPayment:
    if not is_admin(user):
        raise PermissionDenied('Solo administradores registran pagos')
    if contract.state == Contract.STATE_CANCELLED:
        raise ValidationError({'contract': 'No se registran pagos en contratos cancelados'})
    payment = ContractPayment.objects.create(contract=contract, created_by=user, **data)
    try:
        log_action(user=user, action='contract_payment', object_type='contract', object_id=contract.id,
                   detail={'amount': str(payment.amount)})
    except Exception:
        pass
    return payment
