from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission


class CashierPermission(RolePermission):
    """
    Cashier desk.

    - Reception: read + take payments
    - Everyone else: no access (Admin always allowed)
    """
    read_roles = set()
    write_roles = {RoleChoices.RECEPTION}
