from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services.notifications import notifications_for


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notifications(request):
    items = notifications_for(request.user)
    return Response({'ok': True, 'data': items, 'count': len(items)})
