from rest_framework import serializers

from core.models import User

ROLE_CHOICES = [r for r, _ in User.ROLE_CHOICES]

class UserListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=64, required=False, allow_blank=True)
    role = serializers.ChoiceField(choices=ROLE_CHOICES, required=False)
    processId = serializers.IntegerField(min_value=1, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)

class InviteUserSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    role = serializers.ChoiceField(choices=ROLE_CHOICES, default=User.ROLE_EMPLOYEE)
    processId = serializers.IntegerField(min_value=1, required=False, allow_null=True)

class UpdateUserSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False)
    role = serializers.ChoiceField(choices=ROLE_CHOICES, required=False)
    processId = serializers.IntegerField(min_value=1, required=False, allow_null=True)
    isActive = serializers.BooleanField(required=False)

class ProfileUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150, required=False)
    documentNumber = serializers.CharField(source='document_number', max_length=32, required=False, allow_blank=True)
    documentIssueCity = serializers.CharField(source='document_issue_city', max_length=100, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=32, required=False, allow_blank=True)
    address = serializers.CharField(max_length=255, required=False, allow_blank=True)
    city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    bankName = serializers.CharField(source='bank_name', max_length=100, required=False, allow_blank=True)
    bankAccount = serializers.CharField(source='bank_account', max_length=50, required=False, allow_blank=True)
    bankAccountType = serializers.CharField(source='bank_account_type', max_length=30, required=False, allow_blank=True)
    taxRegime = serializers.CharField(source='tax_regime', max_length=100, required=False, allow_blank=True)
    rutActivityCode = serializers.CharField(source='rut_activity_code', max_length=20, required=False, allow_blank=True)

class SignatureSerializer(serializers.Serializer):
    dataUrl = serializers.CharField(required=False, allow_blank=True)
    file = serializers.FileField(required=False)

    def validate(self, attrs):
        if not attrs.get('dataUrl') and not attrs.get('file'):
            raise serializers.ValidationError({'signature': 'Debe enviar la firma'})
        return attrs

class ProcessSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255)
    description = serializers.CharField(required=False, allow_blank=True)
