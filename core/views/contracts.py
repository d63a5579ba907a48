"""
Contract endpoints: listing with filters, create/edit, the state actions
menu, history, statistics, xlsx exports, file uploads and payments.
"""
from __future__ import annotations

from django.utils import timezone
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.contracts import (
    ContractFileSerializer, ContractListQuerySerializer, ContractStateSerializer, ContractWriteSerializer,
    HistoryQuerySerializer, PaymentSerializer,
)
from core.services import contracts as svc
from core.services.billing import serialize_account
from core.views.common import paginate, xlsx_response


def _filtered(request):
    q = ContractListQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    qs = svc.scope_contracts(request.user).select_related('contractor', 'supervisor', 'created_by')
    return svc.filter_contracts(qs, q.validated_data), q.validated_data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def contracts(request):
    if request.method == 'POST':
        s = ContractWriteSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        c = svc.create_contract(request.user, s.validated_data)
        return Response({'ok': True, 'data': svc.serialize_contract(c, user=request.user)}, status=201)

    qs, params = _filtered(request)
    items, pagination = paginate(qs.order_by('-created_at', '-id'), params)
    data = [svc.serialize_contract(c, user=request.user) for c in items]
    return Response({'ok': True, 'data': data, 'pagination': pagination})


@api_view(['GET', 'PATCH', 'PUT'])
@permission_classes([IsAuthenticated])
def contract_detail(request, contract_id: int):
    c = svc.get_contract_for_user(request.user, contract_id)
    if request.method in ('PATCH', 'PUT'):
        s = ContractWriteSerializer(data=request.data, partial=request.method == 'PATCH')
        s.is_valid(raise_exception=True)
        c = svc.update_contract(request.user, c, s.validated_data)

    data = svc.serialize_contract(c, user=request.user)
    data['documents'] = [svc.serialize_document(d) for d in c.documents.order_by('-created_at')]
    data['billingAccounts'] = [
        serialize_account(a) for a in c.billing_accounts.select_related('contract', 'created_by').order_by('-billing_month')
    ]
    data['history'] = [svc.serialize_history(h) for h in c.history.select_related('changed_by')]
    data['payments'] = [svc.serialize_payment(p) for p in c.payments.all()]
    return Response({'ok': True, 'data': data})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def contract_change_state(request, contract_id: int):
    c = svc.get_contract_for_user(request.user, contract_id)
    s = ContractStateSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    c = svc.change_state(request.user, c, s.validated_data['state'], s.validated_data.get('comments', ''))
    return Response({'ok': True, 'data': svc.serialize_contract(c, user=request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_actions(request, contract_id: int):
    c = svc.get_contract_for_user(request.user, contract_id)
    return Response({'ok': True, 'state': c.state, 'data': svc.available_actions(c, request.user)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_history(request):
    q = HistoryQuerySerializer(data=request.query_params)
    q.is_valid(raise_exception=True)
    vd = q.validated_data
    contract_id = vd.get('contractId')
    if contract_id:
        svc.get_contract_for_user(request.user, contract_id)
    qs = svc.history_for(request.user, contract_id=contract_id, state=vd.get('state', ''))
    if vd.get('export') == 'xlsx':
        stamp = timezone.localdate().strftime('%Y%m%d')
        return xlsx_response(svc.export_history_xlsx(qs), f'historial_contratos_{stamp}.xlsx')
    items, pagination = paginate(qs, vd, default_size=50)
    return Response({'ok': True, 'data': [svc.serialize_history(h) for h in items], 'pagination': pagination})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def contract_stats(request):
    qs, _ = _filtered(request)
    return Response({'ok': True, 'data': svc.contract_stats(qs)})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def export_contracts(request):
    qs, _ = _filtered(request)
    stamp = timezone.localdate().strftime('%Y%m%d')
    return xlsx_response(svc.export_contracts_xlsx(qs), f'contratos_{stamp}.xlsx')


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def contract_upload_file(request, contract_id: int):
    c = svc.get_contract_for_user(request.user, contract_id)
    s = ContractFileSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data
    result = svc.attach_file(request.user, c, vd['kind'], vd['file'], vd.get('name', ''))
    return Response({'ok': True, 'data': result}, status=201)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, FormParser])
def contract_payments(request, contract_id: int):
    c = svc.get_contract_for_user(request.user, contract_id)
    if request.method == 'POST':
        s = PaymentSerializer(data=request.data)
        s.is_valid(raise_exception=True)
        p = svc.add_payment(request.user, c, s.validated_data)
        return Response({'ok': True, 'data': svc.serialize_payment(p)}, status=201)
    payments = c.payments.all()
    return Response({'ok': True, 'data': [svc.serialize_payment(p) for p in payments]})
