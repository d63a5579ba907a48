"""
Billing accounts ("cuentas de cobro"): the three-phase wizard, the
completion checklist, submission and the supervisor review workflow.
"""
from __future__ import annotations

import datetime
import logging
import re
from decimal import Decimal
from typing import Optional

from django.db import IntegrityError, transaction
from django.db.models import Max, OuterRef, Q, Subquery
from django.utils import timezone
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError

from core.exceptions import BillingIncomplete, InvalidTransition
from core.models import (
    BillingAccount, BillingActivity, BillingActivityEvidence, BillingDocument, BillingReview, Contract, Profile,
)
from core.permissions import ADMIN_ROLES, REVIEWER_ROLES
from core.services.audit import log_action
from core.services.contracts import check_upload, scope_contracts
from core.services.realtime import broadcast_refresh

logger = logging.getLogger(__name__)

DETAIL_FIELDS = ('amount', 'billing_start_date', 'billing_end_date')
PLANILLA_FIELDS = ('planilla_number', 'planilla_value', 'planilla_date')
CERTIFICATION_FIELDS = (
    'novelties', 'certification_date', 'certification_month', 'report_delivery_date', 'executed_before_amount',
    'risk_matrix_compliance', 'social_security_verified', 'annexes',
)
INVOICE_FIELDS = (
    'invoice_number', 'invoice_city', 'invoice_date', 'amount_in_words',
    'declaration_single_employer', 'declaration_80_percent_income',
    'benefit_economic_dependents', 'benefit_prepaid_health', 'benefit_housing_interest',
    'benefit_voluntary_pension', 'benefit_health_contributions',
)

OBSERVATION_TAGS = {
    'INFORME': 'Informe de Actividades',
    'CERTIFICACIÓN': 'Certificación',
    'CUENTA DE COBRO': 'Cuenta de Cobro',
}
_OBSERVATION_RE = re.compile(r'^\[(INFORME|CERTIFICACIÓN|CUENTA DE COBRO)\]\s*(.+)$')


def is_admin(user) -> bool:
    return getattr(user, 'role', '') in ADMIN_ROLES


def is_owner(user, account: BillingAccount) -> bool:
    return bool(user and user.pk and user.pk in (account.created_by_id, account.contract.contractor_id))


# ---------------------------------------------------------------------------
# Numbering & lookups
# ---------------------------------------------------------------------------

def next_account_number(today: Optional[datetime.date] = None) -> str:
    today = today or timezone.localdate()
    prefix = f"CC-{today:%Y%m}-"
    last = (
        BillingAccount.objects.filter(account_number__startswith=prefix)
        .order_by('-account_number').values_list('account_number', flat=True).first()
    )
    seq = int(last.rsplit('-', 1)[1]) + 1 if last else 1
    return f"{prefix}{seq:04d}"


def scope_accounts(user, qs=None):
    qs = BillingAccount.objects.all() if qs is None else qs
    role = getattr(user, 'role', '')
    if role in ADMIN_ROLES:
        return qs
    if role == 'supervisor':
        return qs.filter(Q(contract__supervisor=user) | Q(created_by=user) | Q(contract__contractor=user))
    return qs.filter(Q(created_by=user) | Q(contract__contractor=user))


def get_account_for_user(user, account_id) -> BillingAccount:
    account = (
        BillingAccount.objects.select_related('contract', 'contract__supervisor', 'contract__contractor', 'created_by')
        .filter(id=account_id).first()
    )
    if not account:
        raise NotFound('Cuenta de cobro no encontrada')
    if not scope_accounts(user, BillingAccount.objects.filter(id=account.id)).exists():
        raise PermissionDenied('No tiene acceso a esta cuenta de cobro')
    return account


# ---------------------------------------------------------------------------
# Serialisation
# ---------------------------------------------------------------------------

def parse_observations(comment: str) -> list[dict]:
    """Split supervisor comments into per-document observations.

    Lines tagged ``[INFORME]``, ``[CERTIFICACIÓN]`` or ``[CUENTA DE COBRO]``
    are attached to that document; any other line is a general remark.
    """
    observations = []
    for line in (comment or '').splitlines():
        line = line.strip()
        if not line:
            continue
        m = _OBSERVATION_RE.match(line)
        if m:
            observations.append({'documentType': m.group(1), 'label': OBSERVATION_TAGS[m.group(1)], 'comment': m.group(2)})
        else:
            observations.append({'documentType': '', 'label': 'General', 'comment': line})
    return observations


def _file_url(f):
    return f.url if f else None


def serialize_activity(a: BillingActivity) -> dict:
    return {
        'id': a.id,
        'activityName': a.activity_name,
        'actionsDeveloped': a.actions_developed,
        'activityOrder': a.activity_order,
        'evidence': [
            {'id': e.id, 'fileName': e.file_name, 'url': _file_url(e.file), 'contentType': e.content_type, 'size': e.size}
            for e in a.evidence.all()
        ],
    }


def serialize_review(r: BillingReview) -> dict:
    return {
        'id': r.id,
        'accountId': r.account_id,
        'action': r.action,
        'comments': r.comments,
        'observations': parse_observations(r.comments),
        'reviewer': {'id': r.reviewer.id, 'name': r.reviewer.display_name} if r.reviewer else None,
        'createdAt': r.created_at.isoformat(),
    }


def serialize_account(a: BillingAccount, *, detail: bool = False, user=None) -> dict:
    c = a.contract
    data = {
        'id': a.id,
        'accountNumber': a.account_number,
        'contractId': c.id,
        'contractNumber': c.contract_number,
        'clientName': c.client_name,
        'contractTotal': c.total_value,
        'amount': a.amount,
        'billingMonth': a.billing_month,
        'billingStartDate': a.billing_start_date,
        'billingEndDate': a.billing_end_date,
        'status': a.status,
        'statusLabel': a.get_status_display(),
        'supervisorComment': a.supervisor_comment,
        'observations': parse_observations(a.supervisor_comment),
        'createdBy': {'id': a.created_by.id, 'name': a.created_by.display_name} if a.created_by else None,
        'submittedAt': a.submitted_at.isoformat() if a.submitted_at else None,
        'reviewedAt': a.reviewed_at.isoformat() if a.reviewed_at else None,
        'paidAt': a.paid_at.isoformat() if a.paid_at else None,
        'createdAt': a.created_at.isoformat() if a.created_at else None,
        'updatedAt': a.updated_at.isoformat() if a.updated_at else None,
    }
    if detail:
        data.update({
            'planilla': {
                'number': a.planilla_number,
                'value': a.planilla_value,
                'date': a.planilla_date,
                'fileUrl': _file_url(a.planilla_file),
            },
            'certification': {
                'novelties': a.novelties,
                'certificationDate': a.certification_date,
                'certificationMonth': a.certification_month,
                'reportDeliveryDate': a.report_delivery_date,
                'executedBeforeAmount': a.executed_before_amount,
                'riskMatrixCompliance': a.risk_matrix_compliance,
                'socialSecurityVerified': a.social_security_verified,
                'annexes': a.annexes,
            },
            'invoice': {
                'invoiceNumber': a.invoice_number,
                'invoiceCity': a.invoice_city,
                'invoiceDate': a.invoice_date,
                'amountInWords': a.amount_in_words,
                'declarationSingleEmployer': a.declaration_single_employer,
                'declaration80PercentIncome': a.declaration_80_percent_income,
                'benefitEconomicDependents': a.benefit_economic_dependents,
                'benefitPrepaidHealth': a.benefit_prepaid_health,
                'benefitHousingInterest': a.benefit_housing_interest,
                'benefitVoluntaryPension': a.benefit_voluntary_pension,
                'benefitHealthContributions': a.benefit_health_contributions,
            },
            'activities': [serialize_activity(x) for x in a.activities.prefetch_related('evidence')],
            'documents': [
                {'id': d.id, 'documentType': d.document_type, 'fileName': d.file_name, 'url': _file_url(d.file), 'size': d.size}
                for d in a.documents.all()
            ],
            'reviews': [serialize_review(r) for r in a.reviews.select_related('reviewer')],
            'completion': completion(a),
        })
    if user is not None:
        data['canEdit'] = can_edit(user, a)
        data['canReview'] = can_review(user, a)
    return data


# ---------------------------------------------------------------------------
# Wizard phases
# ---------------------------------------------------------------------------

def _check_period(start, end) -> None:
    if start and end and end < start:
        raise ValidationError({'billingEndDate': 'La fecha final debe ser posterior a la inicial'})


def create_account(user, contract: Contract, *, amount: Decimal, start: datetime.date, end: datetime.date,
                   billing_month: Optional[datetime.date] = None) -> BillingAccount:
    if not scope_contracts(user, Contract.objects.filter(id=contract.id)).exists():
        raise PermissionDenied('No tiene acceso a este contrato')
    if not (is_admin(user) or user.pk in (contract.contractor_id, contract.created_by_id)):
        raise PermissionDenied('Solo el contratista puede crear cuentas de cobro de este contrato')
    if contract.state != Contract.STATE_IN_EXECUTION:
        raise ValidationError({'contractId': 'El contrato debe estar en ejecución'})
    if amount is None or amount <= 0:
        raise ValidationError({'amount': 'El valor debe ser mayor a cero'})
    _check_period(start, end)
    month = (billing_month or start).replace(day=1)
    if BillingAccount.objects.filter(contract=contract, billing_month=month).exists():
        raise ValidationError({'billingMonth': 'Ya existe una cuenta de cobro para este contrato en ese mes'})

    account = None
    for attempt in range(3):
        try:
            with transaction.atomic():
                account = BillingAccount.objects.create(
                    account_number=next_account_number(),
                    contract=contract, created_by=user, amount=amount, billing_month=month,
                    billing_start_date=start, billing_end_date=end, status=BillingAccount.STATUS_DRAFT,
                )
            break
        except IntegrityError:
            if BillingAccount.objects.filter(contract=contract, billing_month=month).exists() or attempt == 2:
                raise ValidationError({'billingMonth': 'Ya existe una cuenta de cobro para este contrato en ese mes'})
    try:
        log_action(user=user, action='billing_create', object_type='billing_account', object_id=account.id,
                   detail={'number': account.account_number, 'contract': contract.contract_number})
    except Exception:
        pass
    return account


def can_edit(user, account: BillingAccount) -> bool:
    if not account.is_editable:
        return False
    return is_admin(user) or is_owner(user, account)


def _require_editable(user, account: BillingAccount) -> None:
    if not (is_admin(user) or is_owner(user, account)):
        raise PermissionDenied('Solo el contratista puede modificar esta cuenta de cobro')
    if not account.is_editable:
        raise InvalidTransition('Solo se pueden modificar cuentas en borrador o rechazadas')


def update_fields(user, account: BillingAccount, data: dict, allowed: tuple, files: Optional[dict] = None,
                  section: str = 'details') -> BillingAccount:
    """Persist one wizard section. Each section saves independently."""
    _require_editable(user, account)
    changed = []
    for field in allowed:
        if field in data:
            setattr(account, field, data[field])
            changed.append(field)
    if 'amount' in changed and (account.amount is None or account.amount <= 0):
        raise ValidationError({'amount': 'El valor debe ser mayor a cero'})
    _check_period(account.billing_start_date, account.billing_end_date)
    if 'billing_start_date' in changed and account.billing_start_date:
        month = account.billing_start_date.replace(day=1)
        if month != account.billing_month:
            clash = BillingAccount.objects.filter(contract_id=account.contract_id, billing_month=month)
            if clash.exclude(id=account.id).exists():
                raise ValidationError({'billingMonth': 'Ya existe una cuenta de cobro para este contrato en ese mes'})
            account.billing_month = month
            changed.append('billing_month')
    for field, f in (files or {}).items():
        if f is None:
            continue
        check_upload(f)
        old = getattr(account, field)
        if old:
            old.delete(save=False)
        setattr(account, field, f)
        changed.append(field)
    account.save()
    try:
        log_action(user=user, action=f'billing_save_{section}', object_type='billing_account', object_id=account.id,
                   detail={'fields': changed})
    except Exception:
        pass
    return account


def save_details(user, account, data):
    return update_fields(user, account, data, DETAIL_FIELDS, section='details')


def save_planilla(user, account, data, planilla_file=None):
    return update_fields(user, account, data, PLANILLA_FIELDS, files={'planilla_file': planilla_file}, section='planilla')


def save_certification(user, account, data):
    return update_fields(user, account, data, CERTIFICATION_FIELDS, section='certification')


def save_invoice(user, account, data):
    return update_fields(user, account, data, INVOICE_FIELDS, section='invoice')


# ---------------------------------------------------------------------------
# Activities
# ---------------------------------------------------------------------------

def add_activity(user, account, *, activity_name: str, actions_developed: str = '', files=None,
                 activity_order: Optional[int] = None) -> BillingActivity:
    _require_editable(user, account)
    if activity_order is None:
        activity_order = (account.activities.aggregate(m=Max('activity_order'))['m'] or 0) + 1
    with transaction.atomic():
        activity = BillingActivity.objects.create(
            account=account, activity_name=activity_name, actions_developed=actions_developed,
            activity_order=activity_order,
        )
        for f in files or []:
            add_evidence(activity, f)
    return activity


def add_evidence(activity: BillingActivity, f) -> BillingActivityEvidence:
    ctype = check_upload(f)
    return BillingActivityEvidence.objects.create(
        activity=activity, file=f, file_name=f.name, content_type=ctype, size=f.size or 0,
    )


def get_activity(account, activity_id) -> BillingActivity:
    activity = account.activities.filter(id=activity_id).first()
    if not activity:
        raise NotFound('Actividad no encontrada')
    return activity


def update_activity(user, account, activity: BillingActivity, data: dict, files=None) -> BillingActivity:
    _require_editable(user, account)
    for field in ('activity_name', 'actions_developed', 'activity_order'):
        if field in data:
            setattr(activity, field, data[field])
    with transaction.atomic():
        activity.save()
        for f in files or []:
            add_evidence(activity, f)
    return activity


def delete_activity(user, account, activity: BillingActivity) -> None:
    _require_editable(user, account)
    for ev in activity.evidence.all():
        ev.file.delete(save=False)
    activity.delete()


def delete_evidence(user, account, evidence_id) -> None:
    _require_editable(user, account)
    ev = BillingActivityEvidence.objects.filter(id=evidence_id, activity__account=account).first()
    if not ev:
        raise NotFound('Evidencia no encontrada')
    ev.file.delete(save=False)
    ev.delete()


def reorder_activities(user, account, ordered_ids: list[int]) -> None:
    _require_editable(user, account)
    current = set(account.activities.values_list('id', flat=True))
    if len(ordered_ids) != len(current) or set(ordered_ids) != current:
        raise ValidationError({'order': 'La lista debe contener todas las actividades de la cuenta'})
    with transaction.atomic():
        for position, activity_id in enumerate(ordered_ids, start=1):
            BillingActivity.objects.filter(id=activity_id).update(activity_order=position)


def add_document(user, account, document_type: str, f) -> BillingDocument:
    _require_editable(user, account)
    check_upload(f)
    return BillingDocument.objects.create(
        account=account, document_type=document_type, file=f, file_name=f.name, size=f.size or 0, uploaded_by=user,
    )


# ---------------------------------------------------------------------------
# Completion, submit, delete
# ---------------------------------------------------------------------------

def _owner_has_signature(account: BillingAccount) -> bool:
    owner_id = account.contract.contractor_id or account.created_by_id
    if not owner_id:
        return False
    profile = Profile.objects.filter(user_id=owner_id).first()
    return bool(profile and profile.signature)


def completion(account: BillingAccount) -> dict:
    details_missing = []
    if not account.contract_id:
        details_missing.append('Contrato')
    if not account.amount:
        details_missing.append('Valor')
    if not account.billing_start_date:
        details_missing.append('Fecha inicio')
    if not account.billing_end_date:
        details_missing.append('Fecha fin')

    activities_missing = [] if account.activities.exists() else ['Agregar al menos una actividad']

    planilla_missing = []
    if not account.planilla_number:
        planilla_missing.append('Número')
    if not account.planilla_value:
        planilla_missing.append('Valor')
    if not account.planilla_date:
        planilla_missing.append('Fecha')
    if not account.planilla_file:
        planilla_missing.append('Archivo PDF')

    signature_missing = [] if _owner_has_signature(account) else ['Agregar firma digital']

    sections = [
        {'key': 'details', 'name': 'Detalles de Cobro', 'missing': details_missing},
        {'key': 'activities', 'name': 'Actividades', 'missing': activities_missing},
        {'key': 'planilla', 'name': 'Planilla de Seguridad Social', 'missing': planilla_missing},
        {'key': 'signature', 'name': 'Firma del Contratista', 'missing': signature_missing},
    ]
    for s in sections:
        s['complete'] = not s['missing']
    done = sum(1 for s in sections if s['complete'])
    return {
        'sections': sections,
        'completed': done,
        'total': len(sections),
        'percent': round(done * 100 / len(sections)),
        'isComplete': done == len(sections),
    }


def submit(user, account: BillingAccount) -> BillingAccount:
    if not is_owner(user, account):
        raise PermissionDenied('Solo el contratista puede enviar la cuenta a revisión')
    if not account.is_editable:
        raise InvalidTransition('La cuenta ya fue enviada a revisión')
    status = completion(account)
    if not status['isComplete']:
        missing = [{'section': s['name'], 'missing': s['missing']} for s in status['sections'] if not s['complete']]
        raise BillingIncomplete(missing=missing)
    previous = account.status
    account.status = BillingAccount.STATUS_PENDING
    account.submitted_at = timezone.now()
    account.save(update_fields=['status', 'submitted_at', 'updated_at'])
    try:
        log_action(user=user, action='billing_submit', object_type='billing_account', object_id=account.id,
                   detail={'from': previous})
    except Exception:
        pass
    logger.info('billing %s submitted for review', account.account_number)
    broadcast_refresh('billing_account', account.id, account.status)
    return account


def delete_account(user, account: BillingAccount) -> None:
    if is_admin(user):
        if account.status == BillingAccount.STATUS_PAID:
            raise InvalidTransition('No se puede eliminar una cuenta pagada')
    elif not (is_owner(user, account) and account.status == BillingAccount.STATUS_DRAFT):
        raise PermissionDenied('Solo se pueden eliminar cuentas propias en borrador')
    aid, number = account.id, account.account_number
    account.delete()
    try:
        log_action(user=user, action='billing_delete', object_type='billing_account', object_id=aid,
                   detail={'number': number})
    except Exception:
        pass


# ---------------------------------------------------------------------------
# Review workflow
# ---------------------------------------------------------------------------

def can_review(user, account: BillingAccount) -> bool:
    role = getattr(user, 'role', '')
    if role not in REVIEWER_ROLES or account.status != BillingAccount.STATUS_PENDING:
        return False
    if role == 'supervisor':
        return account.contract.supervisor_id == user.pk
    return True


def review_queue(user):
    qs = BillingAccount.objects.select_related('contract', 'created_by').filter(status=BillingAccount.STATUS_PENDING)
    role = getattr(user, 'role', '')
    if role == 'supervisor':
        qs = qs.filter(contract__supervisor=user)
    elif role not in ADMIN_ROLES:
        qs = qs.none()
    return qs.order_by('submitted_at', 'id')


def review(user, account: BillingAccount, action: str, comments: str = '') -> BillingAccount:
    if getattr(user, 'role', '') not in REVIEWER_ROLES:
        raise PermissionDenied('Solo supervisores o administradores pueden revisar')
    if account.status != BillingAccount.STATUS_PENDING:
        raise InvalidTransition('La cuenta no está pendiente de revisión')
    if not can_review(user, account):
        raise PermissionDenied('No supervisa el contrato de esta cuenta')
    comments = (comments or '').strip()
    if action == BillingReview.ACTION_REJECT and not comments:
        raise ValidationError({'comments': 'Debe indicar las observaciones del rechazo'})
    if action not in (BillingReview.ACTION_APPROVE, BillingReview.ACTION_REJECT):
        raise ValidationError({'action': 'Acción inválida'})

    now = timezone.now()
    with transaction.atomic():
        BillingReview.objects.create(account=account, reviewer=user, action=action, comments=comments)
        account.status = BillingAccount.STATUS_APPROVED if action == BillingReview.ACTION_APPROVE else BillingAccount.STATUS_REJECTED
        account.supervisor_comment = comments
        account.reviewed_by = user
        account.reviewed_at = now
        account.save(update_fields=['status', 'supervisor_comment', 'reviewed_by', 'reviewed_at', 'updated_at'])
    try:
        log_action(user=user, action=f'billing_{action}', object_type='billing_account', object_id=account.id,
                   detail={'comments': comments})
    except Exception:
        pass
    logger.info('billing %s %sd by %s', account.account_number, action, user.pk)
    broadcast_refresh('billing_account', account.id, account.status)
    return account


def mark_paid(user, account: BillingAccount) -> BillingAccount:
    if not is_admin(user):
        raise PermissionDenied('Solo administradores registran pagos')
    if account.status != BillingAccount.STATUS_APPROVED:
        raise InvalidTransition('Solo cuentas aprobadas pueden marcarse como pagadas')
    account.status = BillingAccount.STATUS_PAID
    account.paid_at = timezone.now()
    account.save(update_fields=['status', 'paid_at', 'updated_at'])
    try:
        log_action(user=user, action='billing_paid', object_type='billing_account', object_id=account.id)
    except Exception:
        pass
    broadcast_refresh('billing_account', account.id, account.status)
    return account


def review_comments(user, q: str = ''):
    """Latest commented review of each account visible to ``user``."""
    latest = (
        BillingReview.objects.filter(account=OuterRef('account')).exclude(comments='')
        .order_by('-created_at', '-id').values('id')[:1]
    )
    qs = (
        BillingReview.objects.exclude(comments='')
        .filter(account__in=scope_accounts(user), id=Subquery(latest))
        .select_related('account', 'account__contract', 'reviewer')
        .order_by('-created_at', '-id')
    )
    if q:
        qs = qs.filter(
            Q(comments__icontains=q) | Q(account__account_number__icontains=q)
            | Q(account__contract__contract_number__icontains=q) | Q(account__contract__client_name__icontains=q)
        )
    return qs
