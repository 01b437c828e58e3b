from django.contrib import admin

from .models import Group, Student, Teacher, Subject, Room, ScheduleSlot


@admin.register(Group)
class GroupAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'program', 'semester', 'leader']
    search_fields = ['name', 'program']
    raw_id_fields = ['leader']


@admin.register(Student)
class StudentAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'enrollment_number', 'group', 'is_group_leader']
    list_filter = ['group', 'is_group_leader']
    search_fields = ['user__username', 'user__first_name', 'user__last_name', 'enrollment_number']
    raw_id_fields = ['user']


@admin.register(Teacher)
class TeacherAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'department']
    search_fields = ['user__username', 'user__first_name', 'user__last_name']
    raw_id_fields = ['user']


@admin.register(Subject)
class SubjectAdmin(admin.ModelAdmin):
    list_display = ['id', 'code', 'name', 'teacher']
    search_fields = ['name', 'code']


@admin.register(Room)
class RoomAdmin(admin.ModelAdmin):
    list_display = ['id', 'name', 'building', 'capacity']
    search_fields = ['name', 'building']


@admin.register(ScheduleSlot)
class ScheduleSlotAdmin(admin.ModelAdmin):
    list_display = ['id', 'group', 'subject', 'teacher', 'room', 'weekday', 'start_time', 'end_time']
    list_filter = ['weekday', 'group']
    search_fields = ['group__name', 'subject__name', 'subject__code']
