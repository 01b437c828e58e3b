from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.db import transaction

from backend.exceptions import Conflict
from users.models import Role
from users.serializers import UserSerializer, ensure_unique_account
from .models import Group, Student, Teacher, Subject, Room, ScheduleSlot

User = get_user_model()


def _person(profile):
    if profile is None:
        return None
    return {'id': profile.id, 'name': profile.user.display_name, 'username': profile.user.username}


class GroupSerializer(serializers.ModelSerializer):
    leader = serializers.SerializerMethodField()
    leader_id = serializers.PrimaryKeyRelatedField(
        source='leader', queryset=Student.objects.all(), write_only=True, required=False, allow_null=True
    )
    student_count = serializers.SerializerMethodField()

    class Meta:
        model = Group
        fields = ['id', 'name', 'program', 'semester', 'leader', 'leader_id', 'student_count']
        extra_kwargs = {'name': {'validators': []}}

    def get_leader(self, obj):
        return _person(obj.leader)

    def get_student_count(self, obj):
        return obj.students.count()

    def validate_name(self, value):
        others = Group.objects.filter(name__iexact=value)
        if self.instance is not None:
            others = others.exclude(pk=self.instance.pk)
        if others.exists():
            raise Conflict(f"Group '{value}' already exists.")
        return value

    def validate(self, data):
        leader = data.get('leader')
        if leader is not None:
            if self.instance is None or leader.group_id != self.instance.pk:
                raise serializers.ValidationError({'leader_id': 'The group leader must be a student of this group.'})
        return data

    @transaction.atomic
    def update(self, instance, validated_data):
        reassign = 'leader' in validated_data
        leader = validated_data.pop('leader', None)
        instance = super().update(instance, validated_data)
        if reassign:
            instance.assign_leader(leader)
        return instance


class GroupLeaderSerializer(serializers.Serializer):
    student_id = serializers.PrimaryKeyRelatedField(queryset=Student.objects.select_related('user'))

    def validate_student_id(self, student):
        if student.group_id != self.context['group'].pk:
            raise serializers.ValidationError('The group leader must be a student of this group.')
        return student


class StudentSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    group = serializers.SerializerMethodField()
    group_id = serializers.PrimaryKeyRelatedField(source='group', queryset=Group.objects.all(), write_only=True)
    leads_group = serializers.SerializerMethodField()
    # Account fields
    username = serializers.CharField(write_only=True, required=False)
    password = serializers.CharField(write_only=True, required=False)
    first_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    last_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    email = serializers.EmailField(write_only=True, required=False)

    class Meta:
        model = Student
        fields = [
            'id', 'user', 'username', 'password', 'first_name', 'last_name', 'email',
            'group', 'group_id', 'enrollment_number', 'is_group_leader', 'leads_group',
        ]
        read_only_fields = ['id']

    def get_group(self, obj):
        return {'id': obj.group.id, 'name': obj.group.name}

    def get_leads_group(self, obj):
        group = getattr(obj, 'led_group', None)
        return group.id if group else None

    def validate(self, data):
        if self.instance is None:
            missing = [f for f in ('username', 'password', 'email') if not data.get(f)]
            if missing:
                raise serializers.ValidationError({f: 'This field is required.' for f in missing})
        user = self.instance.user if self.instance else None
        ensure_unique_account(data.get('username'), data.get('email'), user)
        return data

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data.pop('username'),
            password=validated_data.pop('password'),
            email=validated_data.pop('email'),
            first_name=validated_data.pop('first_name', ''),
            last_name=validated_data.pop('last_name', ''),
            role=Role.STUDENT,
        )
        return Student.objects.create(user=user, **validated_data)

    @transaction.atomic
    def update(self, instance, validated_data):
        user = instance.user
        password = validated_data.pop('password', None)
        for attr in ('username', 'email', 'first_name', 'last_name'):
            if attr in validated_data:
                setattr(user, attr, validated_data.pop(attr))
        if password:
            user.set_password(password)
        user.save()

        for attr, value in validated_data.items():
            setattr(instance, attr, value)
        instance.save()

        # A student who lost the flag or moved to another group stops leading
        led = Group.objects.filter(leader=instance).first()
        if led and (not instance.is_group_leader or led.pk != instance.group_id):
            led.leader = None
            led.save(update_fields=['leader'])
        return instance


class TeacherSerializer(serializers.ModelSerializer):
    user = UserSerializer(read_only=True)
    username = serializers.CharField(write_only=True, required=False)
    password = serializers.CharField(write_only=True, required=False)
    first_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    last_name = serializers.CharField(write_only=True, required=False, allow_blank=True)
    email = serializers.EmailField(write_only=True, required=False)

    class Meta:
        model = Teacher
        fields = ['id', 'user', 'username', 'password', 'first_name', 'last_name', 'email', 'department']
        read_only_fields = ['id']

    def validate(self, data):
        if self.instance is None:
            missing = [f for f in ('username', 'password', 'email') if not data.get(f)]
            if missing:
                raise serializers.ValidationError({f: 'This field is required.' for f in missing})
        user = self.instance.user if self.instance else None
        ensure_unique_account(data.get('username'), data.get('email'), user)
        return data

    @transaction.atomic
    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data.pop('username'),
            password=validated_data.pop('password'),
            email=validated_data.pop('email'),
            first_name=validated_data.pop('first_name', ''),
            last_name=validated_data.pop('last_name', ''),
            role=Role.TEACHER,
        )
        return Teacher.objects.create(user=user, **validated_data)

    @transaction.atomic
    def update(self, instance, validated_data):
        user = instance.user
        password = validated_data.pop('password', None)
        for attr in ('username', 'email', 'first_name', 'last_name'):
            if attr in validated_data:
                setattr(user, attr, validated_data.pop(attr))
        if password:
            user.set_password(password)
        user.save()
        return super().update(instance, validated_data)


class SubjectSerializer(serializers.ModelSerializer):
    teacher = serializers.SerializerMethodField()
    teacher_id = serializers.PrimaryKeyRelatedField(
        source='teacher', queryset=Teacher.objects.all(), write_only=True, required=False, allow_null=True
    )

    class Meta:
        model = Subject
        fields = ['id', 'name', 'code', 'teacher', 'teacher_id']
        extra_kwargs = {'code': {'validators': []}}

    def get_teacher(self, obj):
        return _person(obj.teacher)

    def validate_code(self, value):
        others = Subject.objects.filter(code__iexact=value)
        if self.instance is not None:
            others = others.exclude(pk=self.instance.pk)
        if others.exists():
            raise Conflict(f"Subject code '{value}' already exists.")
        return value


class RoomSerializer(serializers.ModelSerializer):
    class Meta:
        model = Room
        fields = ['id', 'name', 'building', 'capacity']
        extra_kwargs = {'name': {'validators': []}}

    def validate_name(self, value):
        others = Room.objects.filter(name__iexact=value)
        if self.instance is not None:
            others = others.exclude(pk=self.instance.pk)
        if others.exists():
            raise Conflict(f"Room '{value}' already exists.")
        return value


class ScheduleSlotSerializer(serializers.ModelSerializer):
    group = serializers.SerializerMethodField()
    subject = serializers.SerializerMethodField()
    teacher = serializers.SerializerMethodField()
    room = serializers.SerializerMethodField()
    group_id = serializers.PrimaryKeyRelatedField(source='group', queryset=Group.objects.all(), write_only=True)
    subject_id = serializers.PrimaryKeyRelatedField(source='subject', queryset=Subject.objects.all(), write_only=True)
    teacher_id = serializers.PrimaryKeyRelatedField(source='teacher', queryset=Teacher.objects.all(), write_only=True)
    room_id = serializers.PrimaryKeyRelatedField(
        source='room', queryset=Room.objects.all(), write_only=True, required=False, allow_null=True
    )

    class Meta:
        model = ScheduleSlot
        fields = [
            'id', 'group', 'group_id', 'subject', 'subject_id', 'teacher', 'teacher_id',
            'room', 'room_id', 'weekday', 'start_time', 'end_time',
        ]
        # Room double-booking is reported as a conflict in validate()
        validators = []

    def get_group(self, obj):
        return {'id': obj.group.id, 'name': obj.group.name}

    def get_subject(self, obj):
        return {'id': obj.subject.id, 'name': obj.subject.name, 'code': obj.subject.code}

    def get_teacher(self, obj):
        return _person(obj.teacher)

    def get_room(self, obj):
        return {'id': obj.room.id, 'name': obj.room.name} if obj.room else None

    def validate(self, data):
        def current(field):
            if field in data:
                return data[field]
            return getattr(self.instance, field, None)

        start, end = current('start_time'), current('end_time')
        if start and end and end <= start:
            raise serializers.ValidationError({'end_time': 'End time must be after start time.'})

        room = current('room')
        if room is not None:
            clash = ScheduleSlot.objects.filter(room=room, weekday=current('weekday'), start_time=start)
            if self.instance is not None:
                clash = clash.exclude(pk=self.instance.pk)
            if clash.exists():
                raise Conflict('Room is already booked for that weekday and start time.')
        return data
