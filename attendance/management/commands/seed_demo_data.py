from datetime import time, timedelta
from random import random

from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils import timezone

from academics.models import Group, Student, Teacher, Subject, Room, ScheduleSlot, Weekday
from attendance.services import upsert_attendance
from users.models import Role

User = get_user_model()

WEEKDAYS = [Weekday.MONDAY, Weekday.TUESDAY, Weekday.WEDNESDAY, Weekday.THURSDAY, Weekday.FRIDAY]
# date.weekday() -> Weekday
WEEKDAY_BY_INDEX = dict(enumerate(WEEKDAYS + [Weekday.SATURDAY]))


class Command(BaseCommand):
    help = "Seed demo data: accounts, groups with leaders, students, teachers, subjects, rooms, schedule slots and attendance"

    def add_arguments(self, parser):
        parser.add_argument('--groups', type=int, default=2, help='Number of groups to create')
        parser.add_argument('--students-per-group', type=int, default=10, help='Number of students per group')
        parser.add_argument('--teachers', type=int, default=3, help='Number of teachers to create')
        parser.add_argument('--subjects', type=int, default=4, help='Number of subjects to create')
        parser.add_argument('--attendance-days', type=int, default=7, help='Number of past days to record attendance for')
        parser.add_argument('--password', type=str, default='demo1234', help='Password for every created account')

    def _account(self, username, role, password, **extra):
        user, created = User.objects.get_or_create(
            username=username,
            defaults={'email': f"{username}@demo.local", 'role': role, **extra},
        )
        if created:
            user.set_password(password)
            user.save()
        return user

    @transaction.atomic
    def handle(self, *args, **options):
        num_groups = options['groups']
        per_group = options['students_per_group']
        num_teachers = options['teachers']
        num_subjects = options['subjects']
        attendance_days = options['attendance_days']
        password = options['password']

        if num_groups < 1 or num_teachers < 1 or num_subjects < 1:
            raise CommandError("--groups, --teachers and --subjects must be at least 1")

        self._account('admin', Role.ADMIN, password, is_staff=True, is_superuser=True)
        self._account('proctor', Role.PROCTOR, password)
        self.stdout.write(self.style.SUCCESS("Accounts: admin, proctor"))

        teachers = []
        for i in range(1, num_teachers + 1):
            user = self._account(f"teacher{i}", Role.TEACHER, password, first_name=f"Teacher{i}", last_name="Demo")
            teacher, _ = Teacher.objects.get_or_create(user=user, defaults={'department': 'Systems'})
            teachers.append(teacher)
        self.stdout.write(self.style.SUCCESS(f"Teachers: {len(teachers)}"))

        subjects = []
        for i in range(1, num_subjects + 1):
            subject, _ = Subject.objects.get_or_create(
                code=f"SUB{i:03d}",
                defaults={'name': f"Subject {i}", 'teacher': teachers[(i - 1) % len(teachers)]},
            )
            subjects.append(subject)
        self.stdout.write(self.style.SUCCESS(f"Subjects: {len(subjects)}"))

        groups = []
        for g in range(1, num_groups + 1):
            group, _ = Group.objects.get_or_create(name=f"Group {g}", defaults={'program': 'Demo Program', 'semester': g})
            room, _ = Room.objects.get_or_create(name=f"Room {g}", defaults={'building': 'Main'})

            members = []
            for i in range(1, per_group + 1):
                user = self._account(f"student{g}_{i}", Role.STUDENT, password, first_name=f"Student{i}", last_name=f"G{g}")
                student, _ = Student.objects.get_or_create(
                    user=user, defaults={'group': group, 'enrollment_number': f"{g:02d}{i:04d}"}
                )
                members.append(student)

            if members and group.leader_id is None:
                leader = members[0]
                leader.is_group_leader = True
                leader.save(update_fields=['is_group_leader'])
                group.leader = leader
                group.save(update_fields=['leader'])

            # One slot per weekday, subjects in rotation
            for idx, weekday in enumerate(WEEKDAYS):
                subject = subjects[idx % len(subjects)]
                ScheduleSlot.objects.get_or_create(
                    room=room,
                    weekday=weekday,
                    start_time=time(8, 0),
                    defaults={
                        'group': group,
                        'subject': subject,
                        'teacher': subject.teacher or teachers[0],
                        'end_time': time(10, 0),
                    },
                )
            groups.append(group)
        self.stdout.write(self.style.SUCCESS(f"Groups: {len(groups)}"))

        attendance_written = 0
        today = timezone.localdate()
        for d in range(attendance_days):
            day = today - timedelta(days=d)
            weekday = WEEKDAY_BY_INDEX.get(day.weekday())
            if weekday is None:
                continue
            for group in groups:
                if group.leader_id is None:
                    continue
                for slot in ScheduleSlot.objects.filter(group=group, weekday=weekday):
                    upsert_attendance(
                        slot.pk, day, random() > 0.1,  # 90% present
                        recorded_by_id=group.leader_id,
                        recorded_by_role=Role.STUDENT,
                    )
                    attendance_written += 1
        self.stdout.write(self.style.SUCCESS(f"Attendance records written: {attendance_written}"))

        self.stdout.write(self.style.SUCCESS("Demo data seeding complete."))
