import logging

from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken

from .identity import ActingUser
from .models import Role

logger = logging.getLogger(__name__)


class RoleJWTAuthentication(JWTAuthentication):
    """
    JWT authentication that also pins an immutable ActingUser on the request.

    The role is read from the token's ``role`` claim, falling back to the
    user row for tokens issued without one.
    """

    def authenticate(self, request):
        result = super().authenticate(request)
        if result is None:
            return None
        user, token = result
        claim = token.get('role', user.role)
        try:
            role = Role(claim)
        except ValueError:
            logger.warning("Rejected token for user %s with unknown role %r", user.pk, claim)
            raise InvalidToken({'detail': 'Token carries an unknown role', 'code': 'token_not_valid'})
        request.acting_user = ActingUser(id=user.pk, role=role)
        return user, token
