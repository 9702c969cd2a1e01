"""
Role-based permissions shared by all clinic endpoints.
"""
from rest_framework import permissions
from apps.authz.models import RoleChoices


def get_user_roles(user):
    """Role names of ``user`` (empty for anonymous)."""
    if not user or not user.is_authenticated:
        return set()
    return set(user.user_roles.values_list('role__name', flat=True))


class IsAdmin(permissions.BasePermission):
    """
    Only Admin role users.
    """

    def has_permission(self, request, view):
        return RoleChoices.ADMIN in get_user_roles(request.user)


class RolePermission(permissions.BasePermission):
    """
    Base permission: read and write role sets per endpoint.

    Subclasses set ``read_roles`` and ``write_roles``. Admin is always allowed.
    """
    read_roles = set()
    write_roles = set()

    def has_permission(self, request, view):
        user_roles = get_user_roles(request.user)
        if not user_roles:
            return False

        if RoleChoices.ADMIN in user_roles:
            return True

        if request.method in permissions.SAFE_METHODS:
            return bool(user_roles & (self.read_roles | self.write_roles))

        return bool(user_roles & self.write_roles)

    def has_object_permission(self, request, view, obj):
        return self.has_permission(request, view)


class DoctorPermission(RolePermission):
    """
    Doctor profiles.

    - Everyone on staff: read (reception picks a doctor when creating a visit)
    - Admin: write
    """
    read_roles = {
        RoleChoices.DOCTOR,
        RoleChoices.RECEPTION,
        RoleChoices.LAB,
        RoleChoices.REVIEWER,
    }
    write_roles = set()
