from rest_framework.permissions import BasePermission, SAFE_METHODS
from .models import Role


class IsStaffRole(BasePermission):
    """
    Admins and employees, or Django staff accounts.
    """
    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and request.user.is_store_staff
        )


class IsAdminRole(BasePermission):
    def has_permission(self, request, view):
        return bool(
            request.user
            and request.user.is_authenticated
            and (request.user.is_superuser or request.user.role == Role.ADMIN)
        )


class IsStaffOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return True
        return IsStaffRole().has_permission(request, view)
