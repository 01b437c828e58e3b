from rest_framework import permissions

from .identity import ActingUser
from .models import Role


class RolePermission(permissions.BasePermission):
    """
    Simple role based permission.
    - Every authenticated role may read
    - Create/Update/Delete allowed based on role mapping
    Views can override ``role_map`` to widen or narrow write access.
    """

    role_map = {
        Role.STUDENT: ['view'],
        Role.TEACHER: ['view'],
        Role.PROCTOR: ['view'],
        Role.ADMIN: ['view', 'change', 'create', 'delete'],
    }

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        role = ActingUser.from_request(request).role

        # map method to action
        if request.method in permissions.SAFE_METHODS:
            action = 'view'
        elif request.method == 'POST':
            action = 'create'
        elif request.method in ('PUT', 'PATCH'):
            action = 'change'
        elif request.method == 'DELETE':
            action = 'delete'
        else:
            action = 'view'

        role_map = getattr(view, 'role_map', None) or self.role_map
        return action in role_map.get(role, [])


class RoleRequired(permissions.BasePermission):
    """Allows the request only for the listed roles, whatever the method."""
    roles = frozenset()

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return ActingUser.from_request(request).role in self.roles


def roles_required(*roles):
    return type('RoleRequired', (RoleRequired,), {'roles': frozenset(roles)})
