from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission


class LibraryPermission(RolePermission):
    """
    Reference library.

    - Doctor: read + write (curates the shelf)
    - Reviewer: read (selects books for consult diagnosis runs)
    """
    read_roles = {RoleChoices.REVIEWER}
    write_roles = {RoleChoices.DOCTOR}
