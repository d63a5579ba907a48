from decimal import Decimal

from rest_framework import serializers

from core.models import Contract, User

STATE_CHOICES = [s for s, _ in Contract.STATE_CHOICES]
TYPE_CHOICES = [t for t, _ in Contract.TYPE_CHOICES]

class ContractListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    client = serializers.CharField(max_length=100, required=False, allow_blank=True)
    type = serializers.ChoiceField(choices=TYPE_CHOICES, required=False)
    state = serializers.ChoiceField(choices=STATE_CHOICES, required=False)
    startFrom = serializers.DateField(required=False)
    endTo = serializers.DateField(required=False)
    minAmount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)
    maxAmount = serializers.DecimalField(max_digits=15, decimal_places=2, required=False)
    supervisorId = serializers.IntegerField(min_value=1, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)

class ContractWriteSerializer(serializers.Serializer):
    """camelCase input mapped onto model field names through ``source``."""
    contractNumber = serializers.CharField(source='contract_number', max_length=50, required=False, allow_blank=True)
    contractNumberOriginal = serializers.CharField(source='contract_number_original', max_length=50, required=False, allow_blank=True)
    contractType = serializers.ChoiceField(source='contract_type', choices=TYPE_CHOICES, required=False)
    clientName = serializers.CharField(source='client_name', max_length=255)
    clientDocumentNumber = serializers.CharField(source='client_document_number', max_length=32, required=False, allow_blank=True)
    clientEmail = serializers.EmailField(source='client_email', required=False, allow_blank=True)
    clientPhone = serializers.CharField(source='client_phone', max_length=32, required=False, allow_blank=True)
    clientAddress = serializers.CharField(source='client_address', max_length=255, required=False, allow_blank=True)
    clientBankName = serializers.CharField(source='client_bank_name', max_length=100, required=False, allow_blank=True)
    clientAccountNumber = serializers.CharField(source='client_account_number', max_length=50, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True)
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=15, decimal_places=2)
    additionAmount = serializers.DecimalField(source='addition_amount', max_digits=15, decimal_places=2, required=False)
    hourlyRate = serializers.DecimalField(source='hourly_rate', max_digits=12, decimal_places=2, required=False, allow_null=True)
    startDate = serializers.DateField(source='start_date')
    endDate = serializers.DateField(source='end_date', required=False, allow_null=True)
    areaResponsible = serializers.CharField(source='area_responsible', max_length=255, required=False, allow_blank=True)
    cdp = serializers.CharField(max_length=50, required=False, allow_blank=True)
    rp = serializers.CharField(max_length=50, required=False, allow_blank=True)
    contractorId = serializers.PrimaryKeyRelatedField(source='contractor', queryset=User.objects.all(), required=False, allow_null=True)
    supervisorId = serializers.PrimaryKeyRelatedField(source='supervisor', queryset=User.objects.all(), required=False, allow_null=True)

class ContractStateSerializer(serializers.Serializer):
    state = serializers.ChoiceField(choices=STATE_CHOICES)
    comments = serializers.CharField(max_length=2000, required=False, allow_blank=True)

class HistoryQuerySerializer(serializers.Serializer):
    contractId = serializers.IntegerField(min_value=1, required=False)
    state = serializers.ChoiceField(choices=STATE_CHOICES, required=False)
    export = serializers.ChoiceField(choices=['xlsx'], required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=500, required=False)

class ContractFileSerializer(serializers.Serializer):
    kind = serializers.ChoiceField(choices=['signed_document', 'bank_certification', 'document'])
    name = serializers.CharField(max_length=255, required=False, allow_blank=True)
    file = serializers.FileField()

class PaymentSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'))
    paymentDate = serializers.DateField(source='payment_date')
    paymentMethod = serializers.CharField(source='payment_method', max_length=50, required=False, allow_blank=True)
    referenceNumber = serializers.CharField(source='reference_number', max_length=100, required=False, allow_blank=True)
    notes = serializers.CharField(required=False, allow_blank=True)
