"""
Read-only lookups over the academic directory.

Both the attendance authorization checks and the record endpoints resolve
schedule slots and group leadership through this module, so the attendance
app never has to reach into academics views or serializers.
"""

from dataclasses import dataclass
from typing import Optional

from rest_framework.exceptions import NotFound

from .models import Group, ScheduleSlot, Student, Teacher


@dataclass(frozen=True)
class SlotRef:
    slot_id: int
    group_id: int
    subject_id: int
    teacher_id: int
    room_id: Optional[int] = None


class ScheduleDirectory:

    def resolve(self, slot_id) -> SlotRef:
        """Return the owning group, subject and teacher of a slot, or raise NotFound."""
        row = (
            ScheduleSlot.objects.filter(pk=slot_id)
            .values('id', 'group_id', 'subject_id', 'teacher_id', 'room_id')
            .first()
        )
        if row is None:
            raise NotFound(f"Schedule slot with id {slot_id} not found")
        return SlotRef(
            slot_id=row['id'],
            group_id=row['group_id'],
            subject_id=row['subject_id'],
            teacher_id=row['teacher_id'],
            room_id=row['room_id'],
        )

    def student_for_user(self, user_id) -> Optional[Student]:
        return Student.objects.filter(user_id=user_id).first()

    def teacher_for_user(self, user_id) -> Optional[Teacher]:
        return Teacher.objects.filter(user_id=user_id).first()

    def group_led_by(self, student_id) -> Optional[int]:
        return Group.objects.filter(leader_id=student_id).values_list('id', flat=True).first()

    def group_ids_for_teacher(self, teacher_id):
        return set(
            ScheduleSlot.objects.filter(teacher_id=teacher_id).values_list('group_id', flat=True)
        )

    def slot_ids_for_group(self, group_id):
        return list(ScheduleSlot.objects.filter(group_id=group_id).values_list('id', flat=True))


directory = ScheduleDirectory()
