"""
Clinical permissions for API endpoints.

BUSINESS RULE: the lab sees visits and patients (to match a sample) but
never writes clinical data. Reception registers patients and checks them
in, but does not complete visits.
"""
from rest_framework import permissions

from apps.authz.models import RoleChoices
from apps.authz.permissions import RolePermission, get_user_roles

ALL_STAFF = {
    RoleChoices.DOCTOR,
    RoleChoices.RECEPTION,
    RoleChoices.LAB,
    RoleChoices.REVIEWER,
}


class PatientPermission(RolePermission):
    """
    - Doctor, Reception: read + write
    - Lab, Reviewer: read
    - Delete: Admin only
    """
    read_roles = {RoleChoices.LAB, RoleChoices.REVIEWER}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.RECEPTION}

    def has_permission(self, request, view):
        if request.method == 'DELETE':
            return RoleChoices.ADMIN in get_user_roles(request.user)
        return super().has_permission(request, view)


class VisitPermission(RolePermission):
    """
    Visits.

    - Everyone on staff: read
    - Reception: check-in (create)
    - Doctor: hold for lab, complete, attach documents

    Per-action write roles are declared on the view as
    ``action_roles = {'create': {...}, 'complete': {...}}``.
    """
    read_roles = ALL_STAFF
    write_roles = {RoleChoices.DOCTOR, RoleChoices.RECEPTION}

    def has_permission(self, request, view):
        if not super().has_permission(request, view):
            return False
        if request.method in permissions.SAFE_METHODS:
            return True

        user_roles = get_user_roles(request.user)
        if RoleChoices.ADMIN in user_roles:
            return True

        action_roles = getattr(view, 'action_roles', {}).get(getattr(view, 'action', None))
        if action_roles is None:
            return True
        return bool(user_roles & action_roles)


class ConsultPermission(VisitPermission):
    """
    Consult mailbox.

    - Doctor: request a consult, read own requests
    - Reviewer: read, run AI diagnosis, edit, respond
    """
    read_roles = {RoleChoices.DOCTOR, RoleChoices.REVIEWER}
    write_roles = {RoleChoices.DOCTOR, RoleChoices.REVIEWER}


class PrescriptionPermission(RolePermission):
    """
    Prescriptions and prescription templates.

    - Doctor: read + write
    - Reviewer: read
    """
    read_roles = {RoleChoices.REVIEWER}
    write_roles = {RoleChoices.DOCTOR}


class ReportPermission(RolePermission):
    """Dashboard: Doctor and Admin."""
    read_roles = {RoleChoices.DOCTOR}
    write_roles = set()
