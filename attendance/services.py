"""
Upsert of per-session records keyed by (schedule slot, date).

The first write for a pair creates the row; later writes overwrite the
mutable fields and the recorded-by fields in place. ``update_or_create``
locks the existing row and falls back to a re-read when a concurrent insert
trips the unique constraint, so a pair never ends up with two rows.
"""

import logging

from django.db import transaction

from .models import ActivityRecord, AttendanceRecord

logger = logging.getLogger(__name__)


def _upsert(model, slot_id, day, fields):
    with transaction.atomic():
        record, created = model.objects.update_or_create(
            schedule_slot_id=slot_id,
            date=day,
            defaults=fields,
        )
    logger.info(
        "%s %s for slot %s on %s (recorded by %s %s)",
        'Created' if created else 'Updated', model.__name__, slot_id, day,
        fields['recorded_by_role'], fields['recorded_by'],
    )
    return record, created


def upsert_attendance(slot_id, day, present, notes=None, *, recorded_by_id, recorded_by_role):
    return _upsert(AttendanceRecord, slot_id, day, {
        'present': present,
        'notes': notes,
        'recorded_by': recorded_by_id,
        'recorded_by_role': recorded_by_role,
    })


def upsert_activity(slot_id, day, topic, activities, homework=None, *, recorded_by_id, recorded_by_role):
    return _upsert(ActivityRecord, slot_id, day, {
        'topic': topic,
        'activities': activities,
        'homework': homework,
        'recorded_by': recorded_by_id,
        'recorded_by_role': recorded_by_role,
    })
