from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission


class AIAssistantPermission(RolePermission):
    """
    AI tools (diagnosis, OCR, safety check, prescription digitizing, timeline).

    - Doctor, Reviewer: use
    - Usage log: Admin only (see AIUsageLogViewSet)
    """
    read_roles = set()
    write_roles = {RoleChoices.DOCTOR, RoleChoices.REVIEWER}
