from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models, transaction

# Use the project's custom user model
User = settings.AUTH_USER_MODEL


class Weekday(models.TextChoices):
    MONDAY = 'monday', 'Monday'
    TUESDAY = 'tuesday', 'Tuesday'
    WEDNESDAY = 'wednesday', 'Wednesday'
    THURSDAY = 'thursday', 'Thursday'
    FRIDAY = 'friday', 'Friday'
    SATURDAY = 'saturday', 'Saturday'


class Group(models.Model):
    name = models.CharField(max_length=100, unique=True)  # e.g., ISC-6A
    program = models.CharField(max_length=150, blank=True)
    semester = models.PositiveSmallIntegerField(default=1)
    leader = models.OneToOneField(
        'Student',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='led_group',
        help_text='Student who records attendance and activities for this group',
    )

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name

    def clean(self):
        if self.leader_id is None:
            return
        if self.leader.group_id != self.pk:
            raise ValidationError({'leader': 'The group leader must be a student of this group.'})
        if not self.leader.is_group_leader:
            raise ValidationError({'leader': 'The student is not flagged as a group leader.'})

    def assign_leader(self, student):
        """Make ``student`` (or nobody) the leader, keeping the is_group_leader flags in step."""
        with transaction.atomic():
            previous = self.leader
            if previous is not None and (student is None or previous.pk != student.pk):
                previous.is_group_leader = False
                previous.save(update_fields=['is_group_leader'])
            if student is not None:
                student.is_group_leader = True
                student.save(update_fields=['is_group_leader'])
            self.leader = student
            self.save(update_fields=['leader'])


class Student(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='student_profile')
    group = models.ForeignKey(Group, on_delete=models.PROTECT, related_name='students')
    enrollment_number = models.CharField(max_length=50, unique=True)
    is_group_leader = models.BooleanField(default=False)

    class Meta:
        ordering = ['enrollment_number']
        indexes = [
            models.Index(fields=['group'], name='student_group_idx'),
        ]

    def __str__(self):
        return f"{self.user.display_name} ({self.enrollment_number})"


class Teacher(models.Model):
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='teacher_profile')
    department = models.CharField(max_length=150, blank=True)

    def __str__(self):
        return self.user.display_name


class Subject(models.Model):
    name = models.CharField(max_length=150)
    code = models.CharField(max_length=20, unique=True)
    teacher = models.ForeignKey(Teacher, on_delete=models.SET_NULL, null=True, blank=True, related_name='subjects')

    class Meta:
        ordering = ['name']

    def __str__(self):
        return f"{self.code} - {self.name}"


class Room(models.Model):
    name = models.CharField(max_length=50, unique=True)
    building = models.CharField(max_length=100, blank=True)
    capacity = models.PositiveIntegerField(default=30)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class ScheduleSlot(models.Model):
    group = models.ForeignKey(Group, on_delete=models.CASCADE, related_name='schedule_slots')
    subject = models.ForeignKey(Subject, on_delete=models.CASCADE, related_name='schedule_slots')
    teacher = models.ForeignKey(Teacher, on_delete=models.PROTECT, related_name='schedule_slots')
    room = models.ForeignKey(Room, on_delete=models.SET_NULL, null=True, blank=True, related_name='schedule_slots')
    weekday = models.CharField(max_length=10, choices=Weekday.choices)
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ['group', 'weekday', 'start_time']
        constraints = [
            models.UniqueConstraint(fields=['room', 'weekday', 'start_time'], name='unique_room_weekday_start'),
            models.CheckConstraint(condition=models.Q(end_time__gt=models.F('start_time')), name='slot_ends_after_start'),
        ]
        indexes = [
            models.Index(fields=['group', 'weekday'], name='slot_group_weekday_idx'),
            models.Index(fields=['teacher'], name='slot_teacher_idx'),
        ]

    def __str__(self):
        return f"{self.group.name} - {self.subject.name} ({self.get_weekday_display()} {self.start_time:%H:%M})"
