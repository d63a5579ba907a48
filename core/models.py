"""
Database models for the Maktub backend.

These models capture the core concepts of the system: users and their
contractor profiles, organisational processes, contracts with their
append-only state history, and the monthly billing accounts that
contractors submit for supervisor review.  Field names follow the
JSON keys consumed by the front-end where possible.
"""
from __future__ import annotations

from django.contrib.auth.models import AbstractUser
from django.db import models


class Process(models.Model):
    """An organisational area ("proceso") users can be attached to."""
    name = models.CharField(max_length=255, unique=True)
    description = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']

    def __str__(self) -> str:
        return self.name


class User(AbstractUser):
    """Custom user model with a role and optional process binding.

    ``super_admin`` and ``admin`` manage everything, ``supervisor``
    reviews billing accounts of the contracts they supervise and
    ``employee`` is the contractor who bills against a contract.
    """
    ROLE_SUPER_ADMIN = 'super_admin'
    ROLE_ADMIN = 'admin'
    ROLE_SUPERVISOR = 'supervisor'
    ROLE_EMPLOYEE = 'employee'
    ROLE_CHOICES = [
        (ROLE_SUPER_ADMIN, 'Super administrador'),
        (ROLE_ADMIN, 'Administrador'),
        (ROLE_SUPERVISOR, 'Supervisor'),
        (ROLE_EMPLOYEE, 'Empleado'),
    ]
    email = models.EmailField(unique=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_EMPLOYEE, db_index=True)
    process = models.ForeignKey(
        Process, null=True, blank=True, on_delete=models.SET_NULL, related_name='users'
    )
    must_set_password = models.BooleanField(default=False)

    def __str__(self) -> str:
        return f"{self.email or self.username} ({self.role})"

    @property
    def display_name(self) -> str:
        return self.get_full_name() or self.username


class Profile(models.Model):
    """Personal, tax and bank data of a user, printed on billing documents."""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='profile')
    document_number = models.CharField(max_length=32, blank=True)
    document_issue_city = models.CharField(max_length=100, blank=True)
    phone = models.CharField(max_length=32, blank=True)
    address = models.CharField(max_length=255, blank=True)
    city = models.CharField(max_length=100, blank=True)
    bank_name = models.CharField(max_length=100, blank=True)
    bank_account = models.CharField(max_length=50, blank=True)
    bank_account_type = models.CharField(max_length=30, blank=True)
    tax_regime = models.CharField(max_length=100, blank=True)
    rut_activity_code = models.CharField(max_length=20, blank=True)
    avatar = models.ImageField(upload_to='avatars/%Y/%m/', blank=True, null=True, max_length=512)
    signature = models.ImageField(upload_to='signatures/%Y/%m/', blank=True, null=True, max_length=512)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self) -> str:
        return f"Profile({self.user_id})"


class Contract(models.Model):
    TYPE_FIXED = 'fixed_amount'
    TYPE_VARIABLE = 'variable_amount'
    TYPE_COMPANY = 'company_contract'
    TYPE_CHOICES = [
        (TYPE_FIXED, 'Monto fijo'),
        (TYPE_VARIABLE, 'Monto variable'),
        (TYPE_COMPANY, 'Contrato empresa'),
    ]

    STATE_REGISTERED = 'registered'
    STATE_RETURNED = 'returned'
    STATE_IN_EXECUTION = 'in_execution'
    STATE_COMPLETED = 'completed'
    STATE_CANCELLED = 'cancelled'
    STATE_CHOICES = [
        (STATE_REGISTERED, 'Registrado'),
        (STATE_RETURNED, 'Devuelto'),
        (STATE_IN_EXECUTION, 'En ejecución'),
        (STATE_COMPLETED, 'Completado'),
        (STATE_CANCELLED, 'Cancelado'),
    ]
    TERMINAL_STATES = (STATE_COMPLETED, STATE_CANCELLED)

    contract_number = models.CharField(max_length=50, unique=True)
    # Number assigned by the hospital's legal office, when different
    contract_number_original = models.CharField(max_length=50, blank=True)
    contract_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default=TYPE_FIXED)

    client_name = models.CharField(max_length=255)
    client_document_number = models.CharField(max_length=32, blank=True)
    client_email = models.EmailField(blank=True)
    client_phone = models.CharField(max_length=32, blank=True)
    client_address = models.CharField(max_length=255, blank=True)
    client_bank_name = models.CharField(max_length=100, blank=True)
    client_account_number = models.CharField(max_length=50, blank=True)

    description = models.TextField(blank=True)
    total_amount = models.DecimalField(max_digits=15, decimal_places=2)
    addition_amount = models.DecimalField(max_digits=15, decimal_places=2, default=0)
    hourly_rate = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    start_date = models.DateField()
    end_date = models.DateField(null=True, blank=True)

    state = models.CharField(max_length=20, choices=STATE_CHOICES, default=STATE_REGISTERED, db_index=True)
    return_comments = models.TextField(blank=True)
    area_responsible = models.CharField(max_length=255, blank=True)
    cdp = models.CharField(max_length=50, blank=True)
    rp = models.CharField(max_length=50, blank=True)

    contractor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='contracts'
    )
    supervisor = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='supervised_contracts'
    )
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='contracts_created'
    )
    signed_document = models.FileField(upload_to='contracts/%Y/%m/', blank=True, null=True, max_length=512)
    bank_certification = models.FileField(upload_to='contracts/%Y/%m/', blank=True, null=True, max_length=512)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        indexes = [
            models.Index(fields=['state', 'end_date'], name='contract_state_end_idx'),
            models.Index(fields=['contractor', 'state'], name='contract_contractor_idx'),
            models.Index(fields=['supervisor', 'state'], name='contract_supervisor_idx'),
        ]

    def __str__(self) -> str:
        return f"{self.contract_number} ({self.client_name})"

    @property
    def total_value(self):
        return (self.total_amount or 0) + (self.addition_amount or 0)


class ContractStateHistory(models.Model):
    """Append-only record of state changes and edits of a contract."""
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='history')
    from_state = models.CharField(max_length=20, blank=True, null=True)
    to_state = models.CharField(max_length=20)
    changed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='contract_changes'
    )
    comments = models.TextField(blank=True)
    field_changes = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [models.Index(fields=['contract', 'created_at'], name='history_contract_idx')]

    def __str__(self) -> str:
        return f"{self.contract_id}: {self.from_state} → {self.to_state}"


class ContractDocument(models.Model):
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='documents')
    name = models.CharField(max_length=255)
    file = models.FileField(upload_to='contracts/%Y/%m/', max_length=512)
    content_type = models.CharField(max_length=128, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"doc {self.id} contract={self.contract_id}"


class ContractPayment(models.Model):
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='payments')
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    payment_date = models.DateField()
    payment_method = models.CharField(max_length=50, blank=True)
    reference_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    created_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-payment_date', '-id']

    def __str__(self) -> str:
        return f"payment {self.amount} contract={self.contract_id}"


class BillingAccount(models.Model):
    """A monthly billing account ("cuenta de cobro") against a contract."""
    STATUS_DRAFT = 'draft'
    STATUS_PENDING = 'pending_review'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    STATUS_PAID = 'paid'
    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Borrador'),
        (STATUS_PENDING, 'Pendiente de revisión'),
        (STATUS_APPROVED, 'Aprobada'),
        (STATUS_REJECTED, 'Rechazada'),
        (STATUS_PAID, 'Pagada'),
    ]
    EDITABLE_STATUSES = (STATUS_DRAFT, STATUS_REJECTED)

    account_number = models.CharField(max_length=50, unique=True)
    contract = models.ForeignKey(Contract, on_delete=models.CASCADE, related_name='billing_accounts')
    created_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='billing_accounts'
    )
    amount = models.DecimalField(max_digits=15, decimal_places=2)
    billing_month = models.DateField()
    billing_start_date = models.DateField(null=True, blank=True)
    billing_end_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT, db_index=True)

    # Social security payment ("planilla")
    planilla_number = models.CharField(max_length=50, blank=True)
    planilla_value = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    planilla_date = models.DateField(null=True, blank=True)
    planilla_file = models.FileField(upload_to='planillas/%Y/%m/', blank=True, null=True, max_length=512)

    # Supervisor certification
    novelties = models.TextField(blank=True)
    certification_date = models.DateField(null=True, blank=True)
    certification_month = models.CharField(max_length=30, blank=True)
    report_delivery_date = models.DateField(null=True, blank=True)
    executed_before_amount = models.DecimalField(max_digits=15, decimal_places=2, null=True, blank=True)
    risk_matrix_compliance = models.BooleanField(default=False)
    social_security_verified = models.BooleanField(default=False)
    annexes = models.TextField(blank=True)

    # Invoice ("cuenta de cobro / documento equivalente")
    invoice_number = models.CharField(max_length=50, blank=True)
    invoice_city = models.CharField(max_length=100, blank=True)
    invoice_date = models.DateField(null=True, blank=True)
    amount_in_words = models.CharField(max_length=500, blank=True)
    declaration_single_employer = models.BooleanField(default=False)
    declaration_80_percent_income = models.BooleanField(default=False)
    benefit_economic_dependents = models.BooleanField(default=False)
    benefit_prepaid_health = models.BooleanField(default=False)
    benefit_housing_interest = models.BooleanField(default=False)
    benefit_voluntary_pension = models.BooleanField(default=False)
    benefit_health_contributions = models.BooleanField(default=False)

    supervisor_comment = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='billing_reviewed'
    )
    reviewed_at = models.DateTimeField(null=True, blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(fields=['contract', 'billing_month'], name='uniq_billing_contract_month'),
        ]
        indexes = [models.Index(fields=['status', 'submitted_at'], name='billing_status_idx')]

    def __str__(self) -> str:
        return f"{self.account_number} ({self.status})"

    @property
    def is_editable(self) -> bool:
        return self.status in self.EDITABLE_STATUSES


class BillingActivity(models.Model):
    account = models.ForeignKey(BillingAccount, on_delete=models.CASCADE, related_name='activities')
    activity_name = models.TextField()
    actions_developed = models.TextField(blank=True)
    activity_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['activity_order', 'id']

    def __str__(self) -> str:
        return f"activity {self.activity_order} account={self.account_id}"


class BillingActivityEvidence(models.Model):
    activity = models.ForeignKey(BillingActivity, on_delete=models.CASCADE, related_name='evidence')
    file = models.FileField(upload_to='evidence/%Y/%m/', max_length=512)
    file_name = models.CharField(max_length=255, blank=True)
    content_type = models.CharField(max_length=128, blank=True)
    size = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"evidence {self.id} activity={self.activity_id}"


class BillingDocument(models.Model):
    account = models.ForeignKey(BillingAccount, on_delete=models.CASCADE, related_name='documents')
    document_type = models.CharField(max_length=50)
    file = models.FileField(upload_to='billing/%Y/%m/', max_length=512)
    file_name = models.CharField(max_length=255, blank=True)
    size = models.PositiveIntegerField(default=0)
    uploaded_by = models.ForeignKey(User, null=True, blank=True, on_delete=models.SET_NULL)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.document_type} account={self.account_id}"


class BillingReview(models.Model):
    """Append-only supervisor decision on a billing account."""
    ACTION_APPROVE = 'approve'
    ACTION_REJECT = 'reject'
    ACTION_CHOICES = [(ACTION_APPROVE, 'Aprobar'), (ACTION_REJECT, 'Rechazar')]

    account = models.ForeignKey(BillingAccount, on_delete=models.CASCADE, related_name='reviews')
    reviewer = models.ForeignKey(
        User, null=True, blank=True, on_delete=models.SET_NULL, related_name='billing_reviews'
    )
    action = models.CharField(max_length=10, choices=ACTION_CHOICES)
    comments = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        indexes = [models.Index(fields=['account', 'created_at'], name='review_account_idx')]

    def __str__(self) -> str:
        return f"{self.action} account={self.account_id}"


class AuditEvent(models.Model):
    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.IntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.user_id}@{self.created_at:%F %T}"
