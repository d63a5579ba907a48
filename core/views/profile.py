"""Current user's profile, avatar and handwritten signature."""
from __future__ import annotations

from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.exceptions import ValidationError
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.serializers.users import ProfileUpdateSerializer, SignatureSerializer
from core.services import users as svc


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated])
def my_profile(request):
    if request.method == 'PATCH':
        s = ProfileUpdateSerializer(data=request.data, partial=True)
        s.is_valid(raise_exception=True)
        svc.update_profile(request.user, s.validated_data)
    return Response({'ok': True, 'data': svc.serialize_user(request.user, with_profile=True)})


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
@parser_classes([JSONParser, MultiPartParser, FormParser])
def my_signature(request):
    if request.method == 'DELETE':
        profile = svc.delete_signature(request.user)
        return Response({'ok': True, 'data': svc.serialize_profile(profile)})
    s = SignatureSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    profile = svc.save_signature(request.user, data_url=s.validated_data.get('dataUrl') or None,
                                 upload=s.validated_data.get('file'))
    return Response({'ok': True, 'data': svc.serialize_profile(profile)}, status=201)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser])
def my_avatar(request):
    upload = request.FILES.get('file')
    if upload is None:
        raise ValidationError({'file': 'Debe enviar una imagen'})
    profile = svc.save_avatar(request.user, upload)
    return Response({'ok': True, 'data': svc.serialize_profile(profile)}, status=201)
