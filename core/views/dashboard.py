"""
Dashboard endpoints.

The overview refreshes expired contracts before counting, so the numbers
a user sees never include contracts whose end date already passed.
"""
from __future__ import annotations

from django.db.models import Count
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.models import BillingAccount
from core.permissions import IsAdminRole
from core.services.audit import recent_activity
from core.services.billing import review_queue, scope_accounts
from core.services.contracts import contract_stats, refresh_contract_states, scope_contracts


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard(request):
    refresh_contract_states()
    user = request.user
    billing = {s: 0 for s, _ in BillingAccount.STATUS_CHOICES}
    for row in scope_accounts(user).values('status').annotate(n=Count('id')):
        billing[row['status']] = row['n']
    return Response({
        'ok': True,
        'data': {
            'contracts': contract_stats(scope_contracts(user)),
            'billing': billing,
            'pendingReviews': review_queue(user).count(),
        },
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def activity_log(request):
    object_type = request.query_params.get('objectType') or None
    object_id = request.query_params.get('objectId')
    try:
        limit = min(int(request.query_params.get('limit', 50)), 500)
        object_id = int(object_id) if object_id else None
    except ValueError:
        return Response({'ok': False, 'error': {'code': 'api_error', 'message': 'Parámetros inválidos'}}, status=400)
    return Response({'ok': True, 'data': recent_activity(object_type=object_type, object_id=object_id, limit=limit)})
