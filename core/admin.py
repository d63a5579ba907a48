"""
Django admin registrations for the core models.

This module hooks the core models into Django's built-in admin
interface so that superusers can inspect and manage data via the
``/admin/`` URL.  History and review rows are append-only, so they are
shown read-only as inlines.
"""

from django.contrib import admin

from .models import (
    AuditEvent,
    BillingAccount,
    BillingActivity,
    BillingReview,
    Contract,
    ContractPayment,
    ContractStateHistory,
    Process,
    Profile,
    User,
)


@admin.register(Process)
class ProcessAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'created_at')
    search_fields = ('name',)


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'email', 'role', 'process', 'is_active', 'must_set_password')
    list_filter = ('role', 'process', 'is_active')
    search_fields = ('username', 'email', 'first_name', 'last_name')


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('user', 'document_number', 'phone', 'bank_name', 'updated_at')
    search_fields = ('user__email', 'document_number')


class ContractStateHistoryInline(admin.TabularInline):
    model = ContractStateHistory
    extra = 0
    readonly_fields = ('from_state', 'to_state', 'changed_by', 'comments', 'field_changes', 'created_at')
    can_delete = False


class ContractPaymentInline(admin.TabularInline):
    model = ContractPayment
    extra = 0


@admin.register(Contract)
class ContractAdmin(admin.ModelAdmin):
    list_display = ('contract_number', 'client_name', 'contract_type', 'state', 'total_amount', 'end_date')
    list_filter = ('state', 'contract_type')
    search_fields = ('contract_number', 'contract_number_original', 'client_name', 'client_document_number')
    inlines = [ContractStateHistoryInline, ContractPaymentInline]


class BillingActivityInline(admin.StackedInline):
    model = BillingActivity
    extra = 0


class BillingReviewInline(admin.TabularInline):
    model = BillingReview
    extra = 0
    readonly_fields = ('reviewer', 'action', 'comments', 'created_at')
    can_delete = False


@admin.register(BillingAccount)
class BillingAccountAdmin(admin.ModelAdmin):
    list_display = ('account_number', 'contract', 'billing_month', 'amount', 'status', 'submitted_at')
    list_filter = ('status',)
    search_fields = ('account_number', 'contract__contract_number', 'contract__client_name')
    inlines = [BillingActivityInline, BillingReviewInline]


@admin.register(AuditEvent)
class AuditEventAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'user', 'action', 'object_type', 'object_id')
    list_filter = ('action', 'object_type')
    search_fields = ('action', 'user__username')
