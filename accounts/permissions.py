import logging

from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)

SAFE_METHODS = ["GET", "HEAD", "OPTIONS"]


def _is_admin(user):
    return user.is_authenticated and (user.is_admin or user.is_superuser)


class IsSystemAdmin(BasePermission):
    message = "Only administrators can perform this action."

    def has_permission(self, request, view):
        allowed = _is_admin(request.user)
        if not allowed and request.user.is_authenticated:
            logger.warning(
                f"Refused {request.method} {request.path} for {request.user.member_no} "
                f"(role={request.user.role})"
            )
        return allowed


class IsSystemAdminOrReadOnly(BasePermission):
    def has_permission(self, request, view):
        if request.method in SAFE_METHODS:
            return request.user.is_authenticated
        return _is_admin(request.user)

    def has_object_permission(self, request, view, obj):
        return request.method in SAFE_METHODS or _is_admin(request.user)


class IsOwnerOrSystemAdmin(BasePermission):
    """
    Object level check for records carrying a `user` foreign key.
    """

    def has_object_permission(self, request, view, obj):
        return obj.user_id == request.user.id or _is_admin(request.user)
