from decimal import Decimal

from rest_framework import serializers

from core.models import BillingAccount

STATUS_CHOICES = [s for s, _ in BillingAccount.STATUS_CHOICES]

class BillingListQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=STATUS_CHOICES, required=False)
    contractId = serializers.IntegerField(min_value=1, required=False)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)

class BillingCreateSerializer(serializers.Serializer):
    contractId = serializers.IntegerField(min_value=1)
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'))
    startDate = serializers.DateField()
    endDate = serializers.DateField()

    def validate(self, attrs):
        if attrs['endDate'] < attrs['startDate']:
            raise serializers.ValidationError({'endDate': 'La fecha final debe ser posterior a la inicial'})
        return attrs

class BillingDetailsSerializer(serializers.Serializer):
    amount = serializers.DecimalField(max_digits=15, decimal_places=2, min_value=Decimal('0.01'), required=False)
    startDate = serializers.DateField(source='billing_start_date', required=False)
    endDate = serializers.DateField(source='billing_end_date', required=False)


class PlanillaSerializer(serializers.Serializer):
    planillaNumber = serializers.CharField(source='planilla_number', max_length=50, required=False, allow_blank=True)
    planillaValue = serializers.DecimalField(source='planilla_value', max_digits=15, decimal_places=2, required=False, allow_null=True)
    planillaDate = serializers.DateField(source='planilla_date', required=False, allow_null=True)
    planillaFile = serializers.FileField(source='planilla_file', required=False)

class CertificationSerializer(serializers.Serializer):
    novelties = serializers.CharField(required=False, allow_blank=True)
    certificationDate = serializers.DateField(source='certification_date', required=False, allow_null=True)
    certificationMonth = serializers.CharField(source='certification_month', max_length=30, required=False, allow_blank=True)
    reportDeliveryDate = serializers.DateField(source='report_delivery_date', required=False, allow_null=True)
    executedBeforeAmount = serializers.DecimalField(source='executed_before_amount', max_digits=15, decimal_places=2, required=False, allow_null=True)
    riskMatrixCompliance = serializers.BooleanField(source='risk_matrix_compliance', required=False)
    socialSecurityVerified = serializers.BooleanField(source='social_security_verified', required=False)
    annexes = serializers.CharField(required=False, allow_blank=True)

class InvoiceSerializer(serializers.Serializer):
    invoiceNumber = serializers.CharField(source='invoice_number', max_length=50, required=False, allow_blank=True)
    invoiceCity = serializers.CharField(source='invoice_city', max_length=100, required=False, allow_blank=True)
    invoiceDate = serializers.DateField(source='invoice_date', required=False, allow_null=True)
    amountInWords = serializers.CharField(source='amount_in_words', max_length=500, required=False, allow_blank=True)
    declarationSingleEmployer = serializers.BooleanField(source='declaration_single_employer', required=False)
    declaration80PercentIncome = serializers.BooleanField(source='declaration_80_percent_income', required=False)
    benefitEconomicDependents = serializers.BooleanField(source='benefit_economic_dependents', required=False)
    benefitPrepaidHealth = serializers.BooleanField(source='benefit_prepaid_health', required=False)
    benefitHousingInterest = serializers.BooleanField(source='benefit_housing_interest', required=False)
    benefitVoluntaryPension = serializers.BooleanField(source='benefit_voluntary_pension', required=False)
    benefitHealthContributions = serializers.BooleanField(source='benefit_health_contributions', required=False)

class ActivitySerializer(serializers.Serializer):
    activityName = serializers.CharField(source='activity_name', max_length=5000)
    actionsDeveloped = serializers.CharField(source='actions_developed', required=False, allow_blank=True)
    activityOrder = serializers.IntegerField(source='activity_order', min_value=0, required=False)

class ActivityUpdateSerializer(ActivitySerializer):
    activityName = serializers.CharField(source='activity_name', max_length=5000, required=False)

class ReorderSerializer(serializers.Serializer):
    ids = serializers.ListField(child=serializers.IntegerField(min_value=1), allow_empty=False)

class BillingDocumentSerializer(serializers.Serializer):
    documentType = serializers.CharField(max_length=50)
    file = serializers.FileField()

class ReviewSerializer(serializers.Serializer):
    action = serializers.ChoiceField(choices=['approve', 'reject'])
    comments = serializers.CharField(max_length=5000, required=False, allow_blank=True)

class ReviewCommentsQuerySerializer(serializers.Serializer):
    q = serializers.CharField(max_length=100, required=False, allow_blank=True)
    page = serializers.IntegerField(min_value=1, required=False)
    pageSize = serializers.IntegerField(min_value=1, max_value=200, required=False)
