"""Rendered billing documents (HTML preview and downloadable PDF)."""
from __future__ import annotations

from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.exceptions import NotFound
from rest_framework.permissions import IsAuthenticated

from core.documents.context import DOCUMENT_KINDS
from core.documents.render import filename_for, render_html, render_pdf
from core.services.audit import log_action
from core.services.billing import get_account_for_user


def _account(request, account_id: int, kind: str):
    if kind not in DOCUMENT_KINDS:
        raise NotFound('Documento desconocido')
    return get_account_for_user(request.user, account_id)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def document_html(request, account_id: int, kind: str):
    account = _account(request, account_id, kind)
    return HttpResponse(render_html(kind, account), content_type='text/html; charset=utf-8')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def document_pdf(request, account_id: int, kind: str):
    account = _account(request, account_id, kind)
    content = render_pdf(kind, account)
    try:
        log_action(user=request.user, action='document_export', object_type='billing_account', object_id=account.id,
                   detail={'kind': kind})
    except Exception:
        pass
    resp = HttpResponse(content, content_type='application/pdf')
    disposition = 'inline' if request.query_params.get('inline') else 'attachment'
    resp['Content-Disposition'] = f'{disposition}; filename="{filename_for(kind, account, "pdf")}"'
    return resp
