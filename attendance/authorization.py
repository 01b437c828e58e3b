"""
Who may write attendance or activity records for a schedule slot.

Admins and proctors may record for any slot. A student may record only
while flagged as a group leader, and only for slots of the group that names
them as its leader. Every other role is refused.
"""

import logging
from dataclasses import dataclass
from typing import Union

from rest_framework.exceptions import PermissionDenied

from academics.directory import ScheduleDirectory, SlotRef, directory as default_directory
from users.identity import ActingUser
from users.models import Role

logger = logging.getLogger(__name__)

NOT_A_LEADER = 'not a group leader'
NOT_THIS_GROUP = "not leader of this slot's group"
ROLE_NOT_AUTHORIZED = 'role not authorized'


@dataclass(frozen=True)
class Permitted:
    recorded_by_id: int
    recorded_by_role: Role


@dataclass(frozen=True)
class Denied:
    reason: str


Decision = Union[Permitted, Denied]


class WriteAuthorizer:

    def __init__(self, directory: ScheduleDirectory = default_directory):
        self.directory = directory

    def authorize(self, acting: ActingUser, slot: SlotRef) -> Decision:
        if acting.role in (Role.ADMIN, Role.PROCTOR):
            return Permitted(recorded_by_id=acting.id, recorded_by_role=acting.role)
        if acting.role == Role.STUDENT:
            return self._authorize_student(acting, slot)
        return Denied(ROLE_NOT_AUTHORIZED)

    def _authorize_student(self, acting, slot):
        student = self.directory.student_for_user(acting.id)
        if student is None or not student.is_group_leader:
            return Denied(NOT_A_LEADER)

        led_group_id = self.directory.group_led_by(student.pk)
        if led_group_id is None or led_group_id != slot.group_id:
            return Denied(NOT_THIS_GROUP)

        return Permitted(recorded_by_id=student.pk, recorded_by_role=Role.STUDENT)

    def require(self, acting: ActingUser, slot: SlotRef) -> Permitted:
        """Like authorize(), but raises PermissionDenied on a denial."""
        decision = self.authorize(acting, slot)
        if isinstance(decision, Denied):
            logger.info(
                "Denied write on slot %s for user %s (%s): %s",
                slot.slot_id, acting.id, acting.role.value, decision.reason,
            )
            raise PermissionDenied(decision.reason)
        return decision


authorizer = WriteAuthorizer()


def authorize_write(acting: ActingUser, slot: SlotRef) -> Decision:
    return authorizer.authorize(acting, slot)
