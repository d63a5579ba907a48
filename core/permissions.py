"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission, SAFE_METHODS

ADMIN_ROLES = {"super_admin", "admin"}
REVIEWER_ROLES = {"super_admin", "admin", "supervisor"}


def has_role(user, roles) -> bool:
    return bool(user and user.is_authenticated and getattr(user, "role", None) in roles)


class IsAdminRole(BasePermission):
    """Allow access only to users with an administrative role."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(getattr(request, "user", None), ADMIN_ROLES)


class IsReviewerRole(BasePermission):
    """Admins and supervisors: may review billing and move contract states."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return has_role(getattr(request, "user", None), REVIEWER_ROLES)


class AdminWriteOrReadOnly(BasePermission):
    """Anyone authenticated may read; only admins may write."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        if request.method in SAFE_METHODS:
            return bool(user and user.is_authenticated)
        return has_role(user, ADMIN_ROLES)
