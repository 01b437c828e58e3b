import logging

from rest_framework import viewsets, filters, status
from rest_framework.decorators import action
from rest_framework.exceptions import PermissionDenied
from rest_framework.response import Response
from django_filters.rest_framework import DjangoFilterBackend

from users.identity import ActingUser
from users.models import Role
from users.permissions import RolePermission, roles_required
from .directory import directory
from .models import Group, Student, Teacher, Subject, Room, ScheduleSlot
from .serializers import (
    GroupSerializer, GroupLeaderSerializer, StudentSerializer, TeacherSerializer,
    SubjectSerializer, RoomSerializer, ScheduleSlotSerializer,
)

logger = logging.getLogger(__name__)

SLOT_RELATIONS = ('group', 'subject', 'teacher__user', 'room')


class GroupViewSet(viewsets.ModelViewSet):
    queryset = Group.objects.select_related('leader__user').prefetch_related('students').all()
    serializer_class = GroupSerializer
    permission_classes = [RolePermission]
    filter_backends = [filters.SearchFilter]
    search_fields = ['name', 'program']

    @action(detail=True, methods=['get'])
    def schedules(self, request, pk=None):
        """Get all schedule slots of a group"""
        group = self.get_object()
        slots = ScheduleSlot.objects.filter(group=group).select_related(*SLOT_RELATIONS)
        return Response(ScheduleSlotSerializer(slots, many=True).data)

    @action(detail=True, methods=['post'], permission_classes=[roles_required(Role.ADMIN)])
    def leader(self, request, pk=None):
        """Make one of the group's students its leader"""
        group = self.get_object()
        serializer = GroupLeaderSerializer(data=request.data, context={'group': group})
        serializer.is_valid(raise_exception=True)
        student = serializer.validated_data['student_id']
        group.assign_leader(student)

        logger.info("Student %s is now leader of group %s", student.pk, group.pk)
        return Response(GroupSerializer(group).data)


class StudentViewSet(viewsets.ModelViewSet):
    queryset = Student.objects.select_related('user', 'group', 'led_group').all()
    serializer_class = StudentSerializer
    permission_classes = [RolePermission]
    # Students read their own record through /api/users/me/
    role_map = {
        Role.TEACHER: ['view'],
        Role.PROCTOR: ['view'],
        Role.ADMIN: ['view', 'change', 'create', 'delete'],
    }
    filter_backends = [DjangoFilterBackend, filters.SearchFilter]
    filterset_fields = ['group', 'is_group_leader']
    search_fields = ['user__username', 'user__first_name', 'user__last_name', 'enrollment_number']


class TeacherViewSet(viewsets.ModelViewSet):
    queryset = Teacher.objects.select_related('user').all()
    serializer_class = TeacherSerializer
    permission_classes = [RolePermission]
    filter_backends = [filters.SearchFilter]
    search_fields = ['user__username', 'user__first_name', 'user__last_name', 'department']

    @action(detail=True, methods=['get'])
    def schedules(self, request, pk=None):
        """Get all schedule slots taught by a teacher"""
        teacher = self.get_object()
        slots = ScheduleSlot.objects.filter(teacher=teacher).select_related(*SLOT_RELATIONS)
        return Response(ScheduleSlotSerializer(slots, many=True).data)


class SubjectViewSet(viewsets.ModelViewSet):
    queryset = Subject.objects.select_related('teacher__user').all()
    serializer_class = SubjectSerializer
    permission_classes = [RolePermission]
    filter_backends = [filters.SearchFilter]
    search_fields = ['name', 'code']


class RoomViewSet(viewsets.ModelViewSet):
    queryset = Room.objects.all()
    serializer_class = RoomSerializer
    permission_classes = [RolePermission]
    filter_backends = [filters.SearchFilter]
    search_fields = ['name', 'building']


class ScheduleSlotViewSet(viewsets.ModelViewSet):
    queryset = ScheduleSlot.objects.select_related(*SLOT_RELATIONS).all()
    serializer_class = ScheduleSlotSerializer
    permission_classes = [RolePermission]
    role_map = {
        Role.STUDENT: ['view'],
        Role.TEACHER: ['view'],
        Role.PROCTOR: ['view', 'change', 'create', 'delete'],
        Role.ADMIN: ['view', 'change', 'create', 'delete'],
    }
    filterset_fields = ['group', 'subject', 'teacher', 'room', 'weekday']

    @action(detail=False, methods=['get'], permission_classes=[roles_required(Role.STUDENT, Role.TEACHER)])
    def mine(self, request):
        """Slots of the caller's group (students) or the caller's classes (teachers)"""
        acting = ActingUser.from_request(request)
        slots = self.get_queryset().none()
        if acting.role == Role.STUDENT:
            student = directory.student_for_user(acting.id)
            if student is not None:
                slots = self.get_queryset().filter(group_id=student.group_id)
        else:
            teacher = directory.teacher_for_user(acting.id)
            if teacher is not None:
                slots = self.get_queryset().filter(teacher=teacher)
        return Response(self.get_serializer(slots, many=True).data)

    @action(detail=False, methods=['get'], permission_classes=[roles_required(Role.STUDENT)])
    def leader(self, request):
        """Slots of the group the calling student leads"""
        acting = ActingUser.from_request(request)
        student = directory.student_for_user(acting.id)
        group_id = directory.group_led_by(student.pk) if student and student.is_group_leader else None
        if group_id is None:
            raise PermissionDenied('not a group leader')
        slots = self.get_queryset().filter(group_id=group_id)
        return Response(self.get_serializer(slots, many=True).data, status=status.HTTP_200_OK)
