from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission, get_user_roles


class LabRequestPermission(RolePermission):
    """
    Lab requests.

    - Doctor: order tests, read results
    - Lab: read worklist, start, complete, parse report photos
    - Reception: read (cashier queue links to requests)

    Per-action write roles are declared on the view as ``action_roles``.
    """
    read_roles = {RoleChoices.RECEPTION}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.LAB}

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False

        action_roles = getattr(view, 'action_roles', {}).get(getattr(view, 'action', None))
        if action_roles is None:
            return True

        user_roles = get_user_roles(request.user)
        return RoleChoices.ADMIN in user_roles or bool(user_roles & action_roles)
