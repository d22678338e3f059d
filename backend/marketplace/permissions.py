# backend/marketplace/permissions.py
from rest_framework.permissions import BasePermission, SAFE_METHODS


class _RolePermission(BasePermission):
    # User property that must be true, e.g. "is_business"
    flag = None
    message = "You do not have permission to perform this action."

    def has_permission(self, request, view):
        user = request.user
        if not user or not user.is_authenticated:
            self.message = "Authentication required."
            return False
        return bool(getattr(user, self.flag, False))


class IsBusiness(_RolePermission):
    flag = "is_business"
    message = "Only business accounts can do this."


class IsStudent(_RolePermission):
    flag = "is_student"
    message = "Only student accounts can do this."


class IsJobOwnerOrReadOnly(BasePermission):
    """
    Anyone authenticated may read a job; only the business that posted it may change it.
    """

    def has_object_permission(self, request, view, obj):
        if request.method in SAFE_METHODS:
            return True
        return obj.business_id == request.user.id
