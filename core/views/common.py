from __future__ import annotations

from django.http import HttpResponse

from core.services.exports import XLSX_CONTENT_TYPE

DEFAULT_PAGE_SIZE = 20


def paginate(qs, params: dict, default_size: int = DEFAULT_PAGE_SIZE):
    """Slice ``qs`` by ``page``/``pageSize`` and return ``(items, pagination)``."""
    page = params.get('page') or 1
    page_size = params.get('pageSize') or default_size
    total = qs.count()
    start = (page - 1) * page_size
    items = list(qs[start:start + page_size])
    return items, {'total': total, 'page': page, 'pageSize': page_size}


def xlsx_response(content: bytes, filename: str) -> HttpResponse:
    resp = HttpResponse(content, content_type=XLSX_CONTENT_TYPE)
    resp['Content-Disposition'] = f'attachment; filename="{filename}"'
    return resp
