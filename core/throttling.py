"""
Scoped rate limits for function views.

``@api_view`` wraps the function in a generated ``APIView`` subclass and
``ScopedRateThrottle`` reads ``throttle_scope`` from that view, so the
scope has to be set on the generated class rather than on the function.
"""


def throttle_scope(scope: str):
    """Apply above ``@api_view``: ``@throttle_scope('login')``."""
    def decorator(view):
        view.cls.throttle_scope = scope
        return view
    return decorator
