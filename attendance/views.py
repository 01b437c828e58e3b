from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, PermissionDenied
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from academics.directory import directory
from academics.models import Group, Teacher
from users.identity import ActingUser
from users.models import Role
from users.permissions import roles_required
from .authorization import authorizer
from .filters import date_range_from_request
from .models import AttendanceRecord, ActivityRecord
from .serializers import (
    AttendanceRecordSerializer, ActivityRecordSerializer,
    AttendanceRegisterSerializer, ActivityRegisterSerializer,
)
from .services import upsert_attendance, upsert_activity

RECORD_RELATIONS = ('schedule_slot__group', 'schedule_slot__subject', 'schedule_slot__teacher__user')


def check_slot_read(acting, slot):
    """Teachers read their own slots, students the slots of their group."""
    if acting.role == Role.TEACHER:
        teacher = directory.teacher_for_user(acting.id)
        if teacher is None or teacher.pk != slot.teacher_id:
            raise PermissionDenied('You can only view records of your own classes')
    elif acting.role == Role.STUDENT:
        student = directory.student_for_user(acting.id)
        if student is None or student.group_id != slot.group_id:
            raise PermissionDenied("You can only view records of your group's classes")


def check_group_read(acting, group_id):
    if not Group.objects.filter(pk=group_id).exists():
        raise NotFound(f"Group with id {group_id} not found")
    if acting.role == Role.TEACHER:
        teacher = directory.teacher_for_user(acting.id)
        if teacher is None or int(group_id) not in directory.group_ids_for_teacher(teacher.pk):
            raise PermissionDenied('You do not teach this group')
    elif acting.role == Role.STUDENT:
        student = directory.student_for_user(acting.id)
        if student is None or student.group_id != int(group_id):
            raise PermissionDenied('You can only view records of your own group')


class SessionRecordMixin:
    """Shared read endpoints of attendance and activity records."""

    def dated(self, queryset):
        return queryset.filter(**date_range_from_request(self.request).as_lookups('date'))

    def respond(self, queryset):
        return Response(self.get_serializer(queryset.order_by('-date'), many=True).data)

    def retrieve(self, request, *args, **kwargs):
        record = self.get_object()
        check_slot_read(ActingUser.from_request(request), directory.resolve(record.schedule_slot_id))
        return Response(self.get_serializer(record).data)

    @action(detail=False, methods=['get'], url_path=r'slot/(?P<slot_id>\d+)')
    def by_slot(self, request, slot_id=None):
        """Records of one schedule slot"""
        slot = directory.resolve(slot_id)
        check_slot_read(ActingUser.from_request(request), slot)
        return self.respond(self.dated(self.get_queryset().filter(schedule_slot_id=slot.slot_id)))

    @action(detail=False, methods=['get'], url_path=r'group/(?P<group_id>\d+)')
    def by_group(self, request, group_id=None):
        """Records of every slot of a group"""
        check_group_read(ActingUser.from_request(request), group_id)
        return self.respond(self.dated(self.get_queryset().filter(schedule_slot__group_id=group_id)))


class AttendanceRecordViewSet(SessionRecordMixin,
                              mixins.ListModelMixin,
                              mixins.RetrieveModelMixin,
                              mixins.UpdateModelMixin,
                              mixins.DestroyModelMixin,
                              viewsets.GenericViewSet):
    queryset = AttendanceRecord.objects.select_related(*RECORD_RELATIONS).all()
    serializer_class = AttendanceRecordSerializer
    filterset_fields = ['schedule_slot', 'present']

    action_roles = {
        'list': (Role.ADMIN, Role.PROCTOR),
        'retrieve': (Role.ADMIN, Role.PROCTOR, Role.TEACHER),
        'update': (Role.ADMIN, Role.PROCTOR),
        'partial_update': (Role.ADMIN, Role.PROCTOR),
        'destroy': (Role.ADMIN,),
        'by_slot': (Role.ADMIN, Role.PROCTOR, Role.TEACHER, Role.STUDENT),
        'by_group': (Role.ADMIN, Role.PROCTOR, Role.TEACHER),
        'by_teacher': (Role.ADMIN, Role.PROCTOR, Role.TEACHER),
    }

    def get_permissions(self):
        roles = self.action_roles.get(self.action)
        if roles is None:
            return [IsAuthenticated()]
        return [roles_required(*roles)()]

    def get_queryset(self):
        queryset = super().get_queryset()
        if self.action == 'list':
            queryset = self.dated(queryset)
        return queryset

    @action(detail=False, methods=['post'])
    def register(self, request):
        """Record attendance for a slot and date, updating the existing record if there is one"""
        serializer = AttendanceRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        slot = directory.resolve(data['schedule_slot_id'])
        permit = authorizer.require(ActingUser.from_request(request), slot)
        record, created = upsert_attendance(
            slot.slot_id, data['date'], data['present'], data.get('notes'),
            recorded_by_id=permit.recorded_by_id,
            recorded_by_role=permit.recorded_by_role,
        )
        return Response(
            self.get_serializer(record).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @action(detail=False, methods=['get'], url_path=r'teacher/(?P<teacher_id>\d+)')
    def by_teacher(self, request, teacher_id=None):
        """Attendance of every slot taught by a teacher"""
        acting = ActingUser.from_request(request)
        teacher = Teacher.objects.filter(pk=teacher_id).first()
        if teacher is None:
            raise NotFound(f"Teacher with id {teacher_id} not found")
        if acting.role == Role.TEACHER and teacher.user_id != acting.id:
            raise PermissionDenied('You can only view your own attendance')
        return self.respond(self.dated(self.get_queryset().filter(schedule_slot__teacher_id=teacher.pk)))


class ActivityRecordViewSet(SessionRecordMixin,
                            mixins.RetrieveModelMixin,
                            viewsets.GenericViewSet):
    queryset = ActivityRecord.objects.select_related(*RECORD_RELATIONS).all()
    serializer_class = ActivityRecordSerializer
    permission_classes = [roles_required(Role.ADMIN, Role.PROCTOR, Role.TEACHER, Role.STUDENT)]

    @action(detail=False, methods=['post'])
    def register(self, request):
        """Record the topic and activities of a class, updating the existing record if there is one"""
        serializer = ActivityRegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        slot = directory.resolve(data['schedule_slot_id'])
        permit = authorizer.require(ActingUser.from_request(request), slot)
        record, created = upsert_activity(
            slot.slot_id, data['date'], data['topic'], data['activities'], data.get('homework'),
            recorded_by_id=permit.recorded_by_id,
            recorded_by_role=permit.recorded_by_role,
        )
        return Response(
            self.get_serializer(record).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )
