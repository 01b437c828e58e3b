from django.db import models

from academics.models import ScheduleSlot
from users.models import Role


class SessionRecord(models.Model):
    """Fields shared by every per-session log: one row per schedule slot and date."""
    date = models.DateField()
    # Student id for group leaders, user id for admins and proctors
    recorded_by = models.PositiveBigIntegerField()
    recorded_by_role = models.CharField(max_length=20, choices=Role.choices)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['-date']


class AttendanceRecord(SessionRecord):
    schedule_slot = models.ForeignKey(ScheduleSlot, on_delete=models.CASCADE, related_name='attendance_records')
    present = models.BooleanField(default=False)
    notes = models.TextField(blank=True, null=True)

    class Meta(SessionRecord.Meta):
        constraints = [
            models.UniqueConstraint(fields=['schedule_slot', 'date'], name='unique_attendance_per_slot_date'),
        ]
        indexes = [
            models.Index(fields=['date'], name='attendance_record_date_idx'),
        ]

    def __str__(self):
        return f"{self.schedule_slot_id} - {self.date} - {'P' if self.present else 'A'}"


class ActivityRecord(SessionRecord):
    schedule_slot = models.ForeignKey(ScheduleSlot, on_delete=models.CASCADE, related_name='activity_records')
    topic = models.CharField(max_length=255)
    activities = models.TextField()
    homework = models.TextField(blank=True, null=True)

    class Meta(SessionRecord.Meta):
        constraints = [
            models.UniqueConstraint(fields=['schedule_slot', 'date'], name='unique_activity_per_slot_date'),
        ]
        indexes = [
            models.Index(fields=['date'], name='activity_record_date_idx'),
        ]

    def __str__(self):
        return f"{self.schedule_slot_id} - {self.date} - {self.topic}"
