"""
Billing account endpoints.

The wizard saves each section on its own request (details, activities,
planilla, certification, invoice); ``submit`` checks completion and hands
the account to the supervisor review queue.
"""
from __future__ import annotations

from django.db.models import Q
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.permissions import IsReviewerRole
from core.serializers.billing import (
    ActivitySerializer, ActivityUpdateSerializer, BillingCreateSerializer, BillingDetailsSerializer,
    BillingDocumentSerializer, BillingListQuerySerializer, CertificationSerializer, InvoiceSerializer,
    PlanillaSerializer, ReorderSerializer, ReviewCommentsQuerySerializer, ReviewSerializer,
)
from core.services import billing as svc
from core.services.contracts import get_contract_for_user
from core.views.common import paginate

WIZARD_PARSERS = [JSONParser, MultiPartParser, FormParser]


def _detail(account, user) -> dict:
    account.refresh_from_db()
    return svc.serialize_account(account, detail=True, user=user)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def billing_accounts(request):
    if request.method == 'POST':
        s = BillingCreateSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        vd = s.validated_data
        contract = get_contract_for_user(request.user, vd['contractId'])
        account = svc.create_account(
            request.user, contract, amount=vd['amount'], start=vd['startDate'], end=vd['endDate'],
        )
        return Response({'ok': True, 'data': svc.serialize_account(account, detail=True, user=request.user)},
                        status=201)

    q = BillingListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    qs = svc.scope_accounts(request.user).select_related('contract', 'created_by')
    if vd.get('status'):
        qs = qs.filter(status=vd['status'])
    if vd.get('contractId'):
        qs = qs.filter(contract_id=vd['contractId'])
    if vd.get('q'):
        term = vd['q']
        qs = qs.filter(
            Q(account_number__icontains=term) | Q(contract__contract_number__icontains=term)
            | Q(contract__client_name__icontains=term)
        )
    items, pagination = paginate(qs.order_by('-billing_month', '-id'), vd)
    return Response({
        'ok': True,
        'data': [svc.serialize_account(a, user=request.user) for a in items],
        'pagination': pagination,
    })


@api_view(['GET', 'DELETE'])
@permission_classes([IsAuthenticated])
def billing_detail(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    if request.method == 'DELETE':
        svc.delete_account(request.user, account)
        return Response({'ok': True})
    return Response({'ok': True, 'data': svc.serialize_account(account, detail=True, user=request.user)})


# ---------------------------------------------------------------------------
# Wizard sections
# ---------------------------------------------------------------------------

SECTION_SERIALIZERS = {
    'details': BillingDetailsSerializer,
    'planilla': PlanillaSerializer,
    'certification': CertificationSerializer,
    'invoice': InvoiceSerializer,
}


@api_view(['PATCH', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes(WIZARD_PARSERS)
def billing_section(request, account_id: int, section: str):
    serializer_class = SECTION_SERIALIZERS.get(section)
    if serializer_class is None:
        return Response({'ok': False, 'error': {'code': 'not_found', 'message': 'Sección desconocida'}}, status=404)
    account = svc.get_account_for_user(request.user, account_id)
    s = serializer_class(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    data = dict(s.validated_data)
    if section == 'details':
        svc.save_details(request.user, account, data)
    elif section == 'planilla':
        svc.save_planilla(request.user, account, data, planilla_file=data.pop('planilla_file', None))
    elif section == 'certification':
        svc.save_certification(request.user, account, data)
    else:
        svc.save_invoice(request.user, account, data)
    return Response({'ok': True, 'data': _detail(account, request.user)})


# ---------------------------------------------------------------------------
# Activities, evidence and other documents
# ---------------------------------------------------------------------------

@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes(WIZARD_PARSERS)
def billing_activities(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    s = ActivitySerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    activity = svc.add_activity(
        request.user, account,
        activity_name=vd['activity_name'],
        actions_developed=vd.get('actions_developed', ''),
        activity_order=vd.get('activity_order'),
        files=request.FILES.getlist('files'),
    )
    return Response({'ok': True, 'data': svc.serialize_activity(activity)}, status=201)


@api_view(['PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
@parser_classes(WIZARD_PARSERS)
def billing_activity_detail(request, account_id: int, activity_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    activity = svc.get_activity(account, activity_id)
    if request.method == 'DELETE':
        svc.delete_activity(request.user, account, activity)
        return Response({'ok': True})
    s = ActivityUpdateSerializer(data=request.data, partial=True)
    s.is_valid(raise_exception=True)
    activity = svc.update_activity(request.user, account, activity, s.validated_data,
                                   files=request.FILES.getlist('files'))
    return Response({'ok': True, 'data': svc.serialize_activity(activity)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def billing_activities_reorder(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    s = ReorderSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    svc.reorder_activities(request.user, account, s.validated_data['ids'])
    return Response({'ok': True, 'data': [svc.serialize_activity(a) for a in account.activities.all()]})


@api_view(['DELETE'])
@permission_classes([IsAuthenticated])
def billing_evidence_delete(request, account_id: int, evidence_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    svc.delete_evidence(request.user, account, evidence_id)
    return Response({'ok': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def billing_documents(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    s = BillingDocumentSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    doc = svc.add_document(request.user, account, s.validated_data['documentType'], s.validated_data['file'])
    return Response({'ok': True, 'data': {'id': doc.id, 'documentType': doc.document_type,
                                          'fileName': doc.file_name, 'url': doc.file.url}}, status=201)


# ---------------------------------------------------------------------------
# Completion, submit, review
# ---------------------------------------------------------------------------

@api_view(['GET'])
@permission_classes([IsAuthenticated])
def billing_completion(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    return Response({'ok': True, 'data': svc.completion(account)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def billing_submit(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    svc.submit(request.user, account)
    return Response({'ok': True, 'data': _detail(account, request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsReviewerRole])
def billing_review_queue(request):
    data = [svc.serialize_account(a, user=request.user) for a in svc.review_queue(request.user)]
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsReviewerRole])
def billing_review(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    s = ReviewSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    svc.review(request.user, account, s.validated_data['action'], s.validated_data.get('comments', ''))
    return Response({'ok': True, 'data': _detail(account, request.user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def billing_mark_paid(request, account_id: int):
    account = svc.get_account_for_user(request.user, account_id)
    svc.mark_paid(request.user, account)
    return Response({'ok': True, 'data': _detail(account, request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def billing_review_comments(request):
    q = ReviewCommentsQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    items, pagination = paginate(svc.review_comments(request.user, q.validated_data.get('q', '')), q.validated_data)
    data = []
    for r in items:
        row = svc.serialize_review(r)
        row.update({
            'accountNumber': r.account.account_number,
            'accountStatus': r.account.status,
            'contractNumber': r.account.contract.contract_number,
            'clientName': r.account.contract.client_name,
        })
        data.append(row)
    return Response({'ok': True, 'data': data, 'pagination': pagination})
