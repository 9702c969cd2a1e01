"""
Explicit caller context passed into every workflow operation.

Services never look up "the current user" on their own; views build a
CallerContext from the authenticated request and hand it down.
"""
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from apps.authz.models import Doctor, RoleChoices, User


@dataclass(frozen=True)
class CallerContext:
    user: User
    roles: FrozenSet[str] = field(default_factory=frozenset)
    doctor: Optional[Doctor] = None

    @classmethod
    def for_user(cls, user):
        roles = frozenset(user.user_roles.values_list('role__name', flat=True))
        doctor = Doctor.objects.filter(user=user).first()
        return cls(user=user, roles=roles, doctor=doctor)

    @classmethod
    def from_request(cls, request):
        return cls.for_user(request.user)

    def has_role(self, *names):
        return bool(self.roles & set(names)) or RoleChoices.ADMIN in self.roles

    @property
    def user_id(self):
        return self.user.id
