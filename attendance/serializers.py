from rest_framework import serializers

from backend.exceptions import Conflict
from .models import AttendanceRecord, ActivityRecord


class SlotSummaryMixin(serializers.Serializer):
    slot = serializers.SerializerMethodField()

    def get_slot(self, obj):
        slot = obj.schedule_slot
        return {
            'id': slot.id,
            'group': {'id': slot.group_id, 'name': slot.group.name},
            'subject': {'id': slot.subject_id, 'name': slot.subject.name},
            'teacher': {'id': slot.teacher_id, 'name': slot.teacher.user.display_name},
            'weekday': slot.weekday,
            'start_time': slot.start_time,
            'end_time': slot.end_time,
        }


class AttendanceRecordSerializer(SlotSummaryMixin, serializers.ModelSerializer):
    class Meta:
        model = AttendanceRecord
        fields = [
            'id', 'schedule_slot', 'slot', 'date', 'present', 'notes',
            'recorded_by', 'recorded_by_role', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'recorded_by', 'recorded_by_role', 'created_at', 'updated_at']
        # Duplicate (slot, date) pairs are reported as a conflict in validate()
        validators = []

    def validate(self, data):
        slot = data.get('schedule_slot', getattr(self.instance, 'schedule_slot', None))
        day = data.get('date', getattr(self.instance, 'date', None))
        clash = AttendanceRecord.objects.filter(schedule_slot=slot, date=day)
        if self.instance is not None:
            clash = clash.exclude(pk=self.instance.pk)
        if clash.exists():
            raise Conflict('An attendance record already exists for this schedule slot and date.')
        return data


class ActivityRecordSerializer(SlotSummaryMixin, serializers.ModelSerializer):
    class Meta:
        model = ActivityRecord
        fields = [
            'id', 'schedule_slot', 'slot', 'date', 'topic', 'activities', 'homework',
            'recorded_by', 'recorded_by_role', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class AttendanceRegisterSerializer(serializers.Serializer):
    schedule_slot_id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    present = serializers.BooleanField()
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ActivityRegisterSerializer(serializers.Serializer):
    schedule_slot_id = serializers.IntegerField(min_value=1)
    date = serializers.DateField()
    topic = serializers.CharField(max_length=255)
    activities = serializers.CharField()
    homework = serializers.CharField(required=False, allow_blank=True, allow_null=True)
