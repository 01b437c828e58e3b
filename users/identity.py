from dataclasses import dataclass

from rest_framework.exceptions import NotAuthenticated

from .models import Role


@dataclass(frozen=True)
class ActingUser:
    """Identity of the caller, resolved once per request from the JWT."""
    id: int
    role: Role

    @classmethod
    def from_request(cls, request):
        acting = getattr(request, 'acting_user', None)
        if acting is not None:
            return acting
        user = getattr(request, 'user', None)
        if not user or not user.is_authenticated:
            raise NotAuthenticated()
        return cls(id=user.pk, role=Role(user.role))

    @property
    def is_staff_role(self):
        return self.role in (Role.ADMIN, Role.PROCTOR)
