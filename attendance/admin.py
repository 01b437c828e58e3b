from django.contrib import admin
from .models import AttendanceRecord, ActivityRecord

@admin.register(AttendanceRecord)
class AttendanceRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'schedule_slot', 'date', 'present', 'recorded_by_role', 'recorded_by']
    list_filter = ['date', 'present', 'recorded_by_role']

@admin.register(ActivityRecord)
class ActivityRecordAdmin(admin.ModelAdmin):
    list_display = ['id', 'schedule_slot', 'date', 'topic', 'recorded_by']
    list_filter = ['date']
    search_fields = ['topic', 'activities']
