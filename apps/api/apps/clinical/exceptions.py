"""
Clinical workflow errors.

Both are ValidationError subclasses so views translate them to HTTP 400
the same way as any other validation failure.
"""
from django.core.exceptions import ValidationError


class InvalidTransitionError(ValidationError):
    """Visit status change not allowed from its current status."""

    def __init__(self, from_status, to_status, allowed=()):
        self.from_status = from_status
        self.to_status = to_status
        if allowed:
            message = (
                f'Transition not allowed: {from_status} -> {to_status}. '
                f'Allowed: {", ".join(allowed)}'
            )
        else:
            message = f'Visit in status "{from_status}" is final and cannot change to "{to_status}"'
        super().__init__(message, code='invalid_transition')


class OpenVisitExistsError(ValidationError):
    """Patient already has a visit that has not been completed."""

    def __init__(self, visit):
        self.visit = visit
        super().__init__(
            f'Patient already has an open visit ({visit.status}, queue #{visit.queue_number or "-"})',
            code='open_visit_exists',
        )
