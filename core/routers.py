"""
URL mappings for the Maktub backend API.

This module registers all API endpoints with their corresponding view
functions.  Trailing slashes are deliberately omitted (``APPEND_SLASH``
is off) to match the front-end's endpoint table.
"""
from django.urls import path

from .auth_views import (
    jwt_logout_view,
    jwt_refresh_view,
    login_view,
    me_view,
    password_reset_request_view,
    set_password_view,
)
from .views import billing, contracts, documents, health
from .views.dashboard import activity_log, dashboard
from .views.email import send_confirmation
from .views.notifications import notifications
from .views.profile import my_avatar, my_profile, my_signature
from .views.users import process_detail, processes, user_detail, user_stats, users

urlpatterns = [
    path('healthz', health.healthz),

    # Auth
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', jwt_refresh_view, name='jwt_refresh'),
    path('api/auth/logout', jwt_logout_view, name='jwt_logout'),
    path('api/auth/me', me_view, name='me'),
    path('api/auth/password-reset', password_reset_request_view, name='password_reset'),
    path('api/auth/set-password', set_password_view, name='set_password'),

    # Users, processes, profile
    path('api/users', users, name='users'),
    path('api/users/stats', user_stats, name='user_stats'),
    path('api/users/<int:user_id>', user_detail, name='user_detail'),
    path('api/processes', processes, name='processes'),
    path('api/processes/<int:process_id>', process_detail, name='process_detail'),
    path('api/profile', my_profile, name='my_profile'),
    path('api/profile/signature', my_signature, name='my_signature'),
    path('api/profile/avatar', my_avatar, name='my_avatar'),

    # Contracts
    path('api/contracts', contracts.contracts, name='contracts'),
    path('api/contracts/stats', contracts.contract_stats, name='contract_stats'),
    path('api/contracts/export', contracts.export_contracts, name='contract_export'),
    path('api/contracts/history', contracts.contract_history, name='contract_history'),
    path('api/contracts/<int:contract_id>', contracts.contract_detail, name='contract_detail'),
    path('api/contracts/<int:contract_id>/state', contracts.contract_change_state, name='contract_state'),
    path('api/contracts/<int:contract_id>/actions', contracts.contract_actions, name='contract_actions'),
    path('api/contracts/<int:contract_id>/files', contracts.contract_upload_file, name='contract_files'),
    path('api/contracts/<int:contract_id>/payments', contracts.contract_payments, name='contract_payments'),

    # Billing
    path('api/billing', billing.billing_accounts, name='billing_accounts'),
    path('api/billing/review-queue', billing.billing_review_queue, name='billing_review_queue'),
    path('api/billing/review-comments', billing.billing_review_comments, name='billing_review_comments'),
    path('api/billing/<int:account_id>', billing.billing_detail, name='billing_detail'),
    path('api/billing/<int:account_id>/sections/<str:section>', billing.billing_section, name='billing_section'),
    path('api/billing/<int:account_id>/activities', billing.billing_activities, name='billing_activities'),
    path('api/billing/<int:account_id>/activities/reorder', billing.billing_activities_reorder,
         name='billing_activities_reorder'),
    path('api/billing/<int:account_id>/activities/<int:activity_id>', billing.billing_activity_detail,
         name='billing_activity_detail'),
    path('api/billing/<int:account_id>/evidence/<int:evidence_id>', billing.billing_evidence_delete,
         name='billing_evidence_delete'),
    path('api/billing/<int:account_id>/documents', billing.billing_documents, name='billing_documents'),
    path('api/billing/<int:account_id>/completion', billing.billing_completion, name='billing_completion'),
    path('api/billing/<int:account_id>/submit', billing.billing_submit, name='billing_submit'),
    path('api/billing/<int:account_id>/review', billing.billing_review, name='billing_review'),
    path('api/billing/<int:account_id>/mark-paid', billing.billing_mark_paid, name='billing_mark_paid'),

    # Rendered documents
    path('api/billing/<int:account_id>/render/<str:kind>/html', documents.document_html, name='document_html'),
    path('api/billing/<int:account_id>/render/<str:kind>/pdf', documents.document_pdf, name='document_pdf'),

    # Misc
    path('api/notifications', notifications, name='notifications'),
    path('api/dashboard', dashboard, name='dashboard'),
    path('api/activity', activity_log, name='activity_log'),
    path('api/email/send-confirmation', send_confirmation, name='send_confirmation'),
]
