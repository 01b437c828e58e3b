from datetime import date, time

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.db import IntegrityError, transaction
from django.test import TestCase
from rest_framework import status
from rest_framework.exceptions import NotFound, PermissionDenied, ValidationError
from rest_framework.test import APITestCase

from academics.directory import directory
from academics.models import Group, Student, Teacher, Subject, Room, ScheduleSlot, Weekday
from users.identity import ActingUser
from users.models import Role
from .authorization import (
    Denied, Permitted, authorize_write, authorizer,
    NOT_A_LEADER, NOT_THIS_GROUP, ROLE_NOT_AUTHORIZED,
)
from .filters import DateRange, date_range_filter
from .models import AttendanceRecord, ActivityRecord
from .services import upsert_attendance, upsert_activity

User = get_user_model()

REGISTER_ATTENDANCE = '/api/attendance/records/register/'
REGISTER_ACTIVITY = '/api/attendance/activities/register/'


class SchoolFixture:
    """Two groups, each with a leader, a plain student and one slot."""

    @classmethod
    def make_user(cls, username, role):
        return User.objects.create_user(
            username=username, email=f"{username}@example.com", password='secret123', role=role,
        )

    @classmethod
    def make_student(cls, username, group, leader=False):
        student = Student.objects.create(
            user=cls.make_user(username, Role.STUDENT),
            group=group,
            enrollment_number=f"E-{username}",
            is_group_leader=leader,
        )
        if leader:
            group.leader = student
            group.save(update_fields=['leader'])
        return student

    @classmethod
    def setUpTestData(cls):
        cls.admin = cls.make_user('admin', Role.ADMIN)
        cls.proctor = cls.make_user('proctor', Role.PROCTOR)
        cls.teacher = Teacher.objects.create(user=cls.make_user('prof', Role.TEACHER))
        cls.other_teacher = Teacher.objects.create(user=cls.make_user('prof2', Role.TEACHER))
        subject = Subject.objects.create(name='Databases', code='DB101', teacher=cls.teacher)
        room = Room.objects.create(name='A-1')

        cls.group_g = Group.objects.create(name='G')
        cls.group_h = Group.objects.create(name='H')
        cls.leader = cls.make_student('leader', cls.group_g, leader=True)
        cls.member = cls.make_student('member', cls.group_g)
        cls.leader_h = cls.make_student('leader_h', cls.group_h, leader=True)

        cls.slot_g = ScheduleSlot.objects.create(
            group=cls.group_g, subject=subject, teacher=cls.teacher, room=room,
            weekday=Weekday.FRIDAY, start_time=time(8, 0), end_time=time(10, 0),
        )
        cls.slot_h = ScheduleSlot.objects.create(
            group=cls.group_h, subject=subject, teacher=cls.other_teacher, room=room,
            weekday=Weekday.FRIDAY, start_time=time(10, 0), end_time=time(12, 0),
        )

    @staticmethod
    def acting(user):
        return ActingUser(id=user.pk, role=Role(user.role))


class DateRangeFilterTest(TestCase):

    def test_no_bounds_matches_everything(self):
        predicate = date_range_filter(None, None)
        self.assertEqual(predicate, DateRange())
        self.assertEqual(predicate.as_lookups('date'), {})
        self.assertTrue(predicate.contains(date(1999, 12, 31)))
        self.assertTrue(predicate.contains(date(2100, 1, 1)))

    def test_both_bounds_are_inclusive(self):
        predicate = date_range_filter('2024-01-01', '2024-01-31')
        self.assertTrue(predicate.contains(date(2024, 1, 1)))
        self.assertTrue(predicate.contains(date(2024, 1, 31)))
        self.assertFalse(predicate.contains(date(2024, 2, 1)))
        self.assertFalse(predicate.contains(date(2023, 12, 31)))
        self.assertEqual(
            predicate.as_lookups('date'),
            {'date__gte': date(2024, 1, 1), 'date__lte': date(2024, 1, 31)},
        )

    def test_single_bounds(self):
        self.assertEqual(date_range_filter('2024-03-01', None).as_lookups('date'), {'date__gte': date(2024, 3, 1)})
        self.assertEqual(date_range_filter(None, '2024-03-01').as_lookups('date'), {'date__lte': date(2024, 3, 1)})

    def test_malformed_date_is_rejected(self):
        with self.assertRaises(ValidationError):
            date_range_filter('not-a-date', None)


class WriteAuthorizerTest(SchoolFixture, TestCase):

    def test_admin_and_proctor_are_always_permitted(self):
        for user in (self.admin, self.proctor):
            for slot in (self.slot_g, self.slot_h):
                decision = authorize_write(self.acting(user), directory.resolve(slot.pk))
                self.assertEqual(decision, Permitted(recorded_by_id=user.pk, recorded_by_role=Role(user.role)))

    def test_leader_is_permitted_only_for_own_group(self):
        acting = self.acting(self.leader.user)
        self.assertEqual(
            authorize_write(acting, directory.resolve(self.slot_g.pk)),
            Permitted(recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT),
        )
        self.assertEqual(authorize_write(acting, directory.resolve(self.slot_h.pk)), Denied(NOT_THIS_GROUP))

    def test_non_leader_student_is_denied(self):
        acting = self.acting(self.member.user)
        for slot in (self.slot_g, self.slot_h):
            self.assertEqual(authorize_write(acting, directory.resolve(slot.pk)), Denied(NOT_A_LEADER))

    def test_flagged_student_not_named_as_leader_is_denied(self):
        self.member.is_group_leader = True
        self.member.save()
        decision = authorize_write(self.acting(self.member.user), directory.resolve(self.slot_g.pk))
        self.assertEqual(decision, Denied(NOT_THIS_GROUP))

    def test_leader_who_lost_the_flag_is_denied(self):
        self.leader.is_group_leader = False
        self.leader.save()
        decision = authorize_write(self.acting(self.leader.user), directory.resolve(self.slot_g.pk))
        self.assertEqual(decision, Denied(NOT_A_LEADER))

    def test_student_role_without_student_record_is_denied(self):
        orphan = self.make_user('orphan', Role.STUDENT)
        decision = authorize_write(self.acting(orphan), directory.resolve(self.slot_g.pk))
        self.assertEqual(decision, Denied(NOT_A_LEADER))

    def test_teacher_is_denied(self):
        decision = authorize_write(self.acting(self.teacher.user), directory.resolve(self.slot_g.pk))
        self.assertEqual(decision, Denied(ROLE_NOT_AUTHORIZED))

    def test_require_raises_permission_denied(self):
        with self.assertRaises(PermissionDenied):
            authorizer.require(self.acting(self.member.user), directory.resolve(self.slot_g.pk))

    def test_unknown_slot_is_not_found(self):
        with self.assertRaises(NotFound):
            directory.resolve(999999)


class UpsertEngineTest(SchoolFixture, TestCase):

    def test_second_write_updates_the_same_record(self):
        day = date(2024, 3, 1)
        first, created = upsert_attendance(
            self.slot_g.pk, day, True, recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT,
        )
        self.assertTrue(created)
        second, created = upsert_attendance(
            self.slot_g.pk, day, False, 'arrived late', recorded_by_id=self.proctor.pk, recorded_by_role=Role.PROCTOR,
        )
        self.assertFalse(created)
        self.assertEqual(first.pk, second.pk)

        record = AttendanceRecord.objects.get(schedule_slot=self.slot_g, date=day)
        self.assertFalse(record.present)
        self.assertEqual(record.notes, 'arrived late')
        self.assertEqual(record.recorded_by, self.proctor.pk)
        self.assertEqual(record.recorded_by_role, Role.PROCTOR)
        self.assertEqual(AttendanceRecord.objects.filter(schedule_slot=self.slot_g, date=day).count(), 1)

    def test_different_dates_create_separate_records(self):
        for day in (date(2024, 3, 1), date(2024, 3, 8)):
            upsert_attendance(self.slot_g.pk, day, True, recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT)
        self.assertEqual(AttendanceRecord.objects.filter(schedule_slot=self.slot_g).count(), 2)

    def test_activity_upsert_overwrites_fields(self):
        day = date(2024, 3, 1)
        upsert_activity(
            self.slot_g.pk, day, 'Joins', 'Exercises 1-5', 'Read chapter 3',
            recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT,
        )
        record, created = upsert_activity(
            self.slot_g.pk, day, 'Indexes', 'Lab', None,
            recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT,
        )
        self.assertFalse(created)
        self.assertEqual(ActivityRecord.objects.count(), 1)
        record.refresh_from_db()
        self.assertEqual(record.topic, 'Indexes')
        self.assertEqual(record.activities, 'Lab')
        self.assertIsNone(record.homework)

    def test_store_rejects_duplicate_natural_key(self):
        day = date(2024, 3, 1)
        AttendanceRecord.objects.create(
            schedule_slot=self.slot_g, date=day, present=True, recorded_by=self.admin.pk, recorded_by_role=Role.ADMIN,
        )
        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                AttendanceRecord.objects.create(
                    schedule_slot=self.slot_g, date=day, present=False,
                    recorded_by=self.admin.pk, recorded_by_role=Role.ADMIN,
                )


class RegisterAttendanceAPITest(SchoolFixture, APITestCase):

    def login(self, username):
        response = self.client.post('/api/auth/login/', {'username': username, 'password': 'secret123'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {response.data['access']}")

    def test_leader_records_then_corrects_attendance(self):
        self.login('leader')
        payload = {'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'present': True}
        response = self.client.post(REGISTER_ATTENDANCE, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['recorded_by'], self.leader.pk)
        self.assertEqual(response.data['recorded_by_role'], Role.STUDENT)

        payload['present'] = False
        response = self.client.post(REGISTER_ATTENDANCE, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        records = AttendanceRecord.objects.filter(schedule_slot=self.slot_g, date=date(2024, 3, 1))
        self.assertEqual(records.count(), 1)
        self.assertFalse(records.get().present)

    def test_non_leader_is_forbidden_and_nothing_is_written(self):
        self.login('member')
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'present': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], NOT_A_LEADER)
        self.assertEqual(AttendanceRecord.objects.count(), 0)

    def test_leader_of_other_group_is_forbidden(self):
        self.login('leader_h')
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'present': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], NOT_THIS_GROUP)

    def test_teacher_is_forbidden(self):
        self.login('prof')
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'present': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], ROLE_NOT_AUTHORIZED)

    def test_proctor_records_for_any_slot(self):
        self.login('proctor')
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': self.slot_h.pk, 'date': '2024-03-01', 'present': True, 'notes': 'checked at door'},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['recorded_by'], self.proctor.pk)
        self.assertEqual(response.data['notes'], 'checked at door')

    def test_unknown_slot_is_not_found(self):
        self.login('admin')
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': 999999, 'date': '2024-03-01', 'present': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['status_code'], 404)

    def test_anonymous_request_is_rejected(self):
        response = self.client.post(
            REGISTER_ATTENDANCE,
            {'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'present': True},
            format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_missing_fields_are_rejected(self):
        self.login('admin')
        response = self.client.post(REGISTER_ATTENDANCE, {'schedule_slot_id': self.slot_g.pk}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date', response.data)
        self.assertIn('present', response.data)


class AttendanceQueryAPITest(SchoolFixture, APITestCase):

    @classmethod
    def setUpTestData(cls):
        super().setUpTestData()
        for day, present in ((date(2024, 1, 5), True), (date(2024, 1, 31), False), (date(2024, 2, 2), True)):
            upsert_attendance(cls.slot_g.pk, day, present, recorded_by_id=cls.leader.pk, recorded_by_role=Role.STUDENT)
        upsert_attendance(cls.slot_h.pk, date(2024, 1, 5), True, recorded_by_id=cls.admin.pk, recorded_by_role=Role.ADMIN)

    def test_list_by_date_range(self):
        self.client.force_authenticate(self.proctor)
        response = self.client.get('/api/attendance/records/', {'startDate': '2024-01-01', 'endDate': '2024-01-31'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(sorted(r['date'] for r in response.data), ['2024-01-05', '2024-01-05', '2024-01-31'])

    def test_list_is_closed_to_students(self):
        self.client.force_authenticate(self.leader.user)
        response = self.client.get('/api/attendance/records/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_invalid_date_is_bad_request(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/attendance/records/', {'startDate': '01/02/2024'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_slot_records_for_own_group_student(self):
        self.client.force_authenticate(self.member.user)
        response = self.client.get(f'/api/attendance/records/slot/{self.slot_g.pk}/', {'startDate': '2024-02-01'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['date'] for r in response.data], ['2024-02-02'])

        response = self.client.get(f'/api/attendance/records/slot/{self.slot_h.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_slot_records_for_teacher(self):
        self.client.force_authenticate(self.teacher.user)
        response = self.client.get(f'/api/attendance/records/slot/{self.slot_g.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([r['date'] for r in response.data], ['2024-02-02', '2024-01-31', '2024-01-05'])

        response = self.client.get(f'/api/attendance/records/slot/{self.slot_h.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_group_records_for_teacher_of_the_group(self):
        self.client.force_authenticate(self.teacher.user)
        response = self.client.get(
            f'/api/attendance/records/group/{self.group_g.pk}/', {'startDate': '2024-01-01', 'endDate': '2024-01-31'},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get(f'/api/attendance/records/group/{self.group_h.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_teacher_records_only_for_self(self):
        self.client.force_authenticate(self.teacher.user)
        response = self.client.get(f'/api/attendance/records/teacher/{self.teacher.pk}/', {'endDate': '2024-01-31'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 2)

        response = self.client.get(f'/api/attendance/records/teacher/{self.other_teacher.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_teacher_retrieves_only_own_class_records(self):
        own = AttendanceRecord.objects.get(schedule_slot=self.slot_g, date=date(2024, 1, 5))
        other = AttendanceRecord.objects.get(schedule_slot=self.slot_h, date=date(2024, 1, 5))
        self.client.force_authenticate(self.teacher.user)
        response = self.client.get(f'/api/attendance/records/{own.pk}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['slot']['group']['name'], 'G')
        self.assertEqual(self.client.get(f'/api/attendance/records/{other.pk}/').status_code, status.HTTP_403_FORBIDDEN)

    def test_update_and_delete_permissions(self):
        record = AttendanceRecord.objects.get(schedule_slot=self.slot_h, date=date(2024, 1, 5))

        self.client.force_authenticate(self.proctor)
        response = self.client.patch(f'/api/attendance/records/{record.pk}/', {'present': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['present'])

        response = self.client.delete(f'/api/attendance/records/{record.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/attendance/records/{record.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(AttendanceRecord.objects.filter(pk=record.pk).exists())

    def test_moving_a_record_onto_an_existing_date_conflicts(self):
        record = AttendanceRecord.objects.get(schedule_slot=self.slot_g, date=date(2024, 1, 5))
        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/attendance/records/{record.pk}/', {'date': '2024-01-31'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class ActivityAPITest(SchoolFixture, APITestCase):

    def test_leader_registers_and_updates_activity(self):
        self.client.force_authenticate(self.leader.user)
        payload = {
            'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01',
            'topic': 'Normalization', 'activities': 'Lecture', 'homework': 'Exercises 1-3',
        }
        response = self.client.post(REGISTER_ACTIVITY, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        payload.update(topic='Normal forms', homework=None)
        response = self.client.post(REGISTER_ACTIVITY, payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['topic'], 'Normal forms')
        self.assertEqual(ActivityRecord.objects.count(), 1)

    def test_non_leader_cannot_register_activity(self):
        self.client.force_authenticate(self.member.user)
        response = self.client.post(REGISTER_ACTIVITY, {
            'schedule_slot_id': self.slot_g.pk, 'date': '2024-03-01', 'topic': 'x', 'activities': 'y',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(ActivityRecord.objects.count(), 0)

    def test_group_activities_by_date_range(self):
        for day in (date(2024, 3, 1), date(2024, 3, 8), date(2024, 4, 5)):
            upsert_activity(
                self.slot_g.pk, day, f"Topic {day}", 'Lecture',
                recorded_by_id=self.leader.pk, recorded_by_role=Role.STUDENT,
            )
        self.client.force_authenticate(self.member.user)
        response = self.client.get(
            f'/api/attendance/activities/group/{self.group_g.pk}/', {'startDate': '2024-03-01', 'endDate': '2024-03-31'},
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([a['date'] for a in response.data], ['2024-03-08', '2024-03-01'])

        response = self.client.get(f'/api/attendance/activities/group/{self.group_h.pk}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SeedDemoDataCommandTest(TestCase):

    def test_seed_creates_leaders_and_slots(self):
        call_command('seed_demo_data', groups=2, students_per_group=3, teachers=2, subjects=2, attendance_days=7, verbosity=0)
        self.assertEqual(Group.objects.count(), 2)
        for group in Group.objects.all():
            self.assertIsNotNone(group.leader)
            self.assertTrue(group.leader.is_group_leader)
            self.assertEqual(group.leader.group_id, group.pk)
            self.assertEqual(group.schedule_slots.count(), 5)
        # 7 consecutive days always include the five weekdays
        self.assertEqual(AttendanceRecord.objects.count(), 10)
