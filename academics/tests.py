from datetime import time

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from rest_framework import status
from rest_framework.test import APITestCase

from users.models import Role
from .models import Group, Student, Teacher, Subject, Room, ScheduleSlot, Weekday

User = get_user_model()


def make_user(username, role):
    return User.objects.create_user(
        username=username, email=f"{username}@example.com", password='secret123', role=role,
    )


def make_student(username, group, leader=False):
    return Student.objects.create(
        user=make_user(username, Role.STUDENT), group=group,
        enrollment_number=f"E-{username}", is_group_leader=leader,
    )


class AcademicsAPITestCase(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = make_user('admin', Role.ADMIN)
        cls.proctor = make_user('proctor', Role.PROCTOR)
        cls.teacher = Teacher.objects.create(user=make_user('prof', Role.TEACHER), department='Systems')
        cls.subject = Subject.objects.create(name='Networks', code='NET200', teacher=cls.teacher)
        cls.room = Room.objects.create(name='B-2', building='North')
        cls.group = Group.objects.create(name='ISC-6A', program='Computer Systems', semester=6)
        cls.other_group = Group.objects.create(name='ISC-6B')
        cls.alice = make_student('alice', cls.group)
        cls.bob = make_student('bob', cls.group)
        cls.carol = make_student('carol', cls.other_group)
        cls.slot = ScheduleSlot.objects.create(
            group=cls.group, subject=cls.subject, teacher=cls.teacher, room=cls.room,
            weekday=Weekday.MONDAY, start_time=time(8, 0), end_time=time(10, 0),
        )

    def slot_payload(self, **overrides):
        payload = {
            'group_id': self.other_group.pk,
            'subject_id': self.subject.pk,
            'teacher_id': self.teacher.pk,
            'room_id': self.room.pk,
            'weekday': Weekday.TUESDAY,
            'start_time': '08:00',
            'end_time': '10:00',
        }
        payload.update(overrides)
        return payload


class GroupLeaderTest(AcademicsAPITestCase):

    def test_admin_assigns_leader(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.alice.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['leader']['id'], self.alice.pk)

        self.group.refresh_from_db()
        self.alice.refresh_from_db()
        self.assertEqual(self.group.leader_id, self.alice.pk)
        self.assertTrue(self.alice.is_group_leader)

    def test_reassigning_leader_clears_previous_flag(self):
        self.client.force_authenticate(self.admin)
        self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.alice.pk})
        response = self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.bob.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.alice.refresh_from_db()
        self.bob.refresh_from_db()
        self.assertFalse(self.alice.is_group_leader)
        self.assertTrue(self.bob.is_group_leader)
        self.assertEqual(Group.objects.get(pk=self.group.pk).leader_id, self.bob.pk)

    def test_leader_must_belong_to_group(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.carol.pk})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('student_id', response.data)

    def test_only_admin_assigns_leader(self):
        self.client.force_authenticate(self.proctor)
        response = self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.alice.pk})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_malformed_or_unknown_student_id_is_bad_request(self):
        self.client.force_authenticate(self.admin)
        for student_id in ('abc', 999999, ''):
            response = self.client.post(
                f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': student_id}, format='json',
            )
            self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
            self.assertIn('student_id', response.data)
        self.assertIsNone(Group.objects.get(pk=self.group.pk).leader_id)

    def test_patching_leader_id_moves_the_flag(self):
        self.client.force_authenticate(self.admin)
        self.client.post(f'/api/academics/groups/{self.group.pk}/leader/', {'student_id': self.alice.pk})
        response = self.client.patch(
            f'/api/academics/groups/{self.group.pk}/', {'leader_id': self.bob.pk}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['leader']['id'], self.bob.pk)

        self.alice.refresh_from_db()
        self.bob.refresh_from_db()
        self.assertFalse(self.alice.is_group_leader)
        self.assertTrue(self.bob.is_group_leader)

    def test_patching_leader_id_to_null_clears_the_flag(self):
        self.group.assign_leader(self.alice)
        self.client.force_authenticate(self.admin)
        response = self.client.patch(f'/api/academics/groups/{self.group.pk}/', {'leader_id': None}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNone(response.data['leader'])

        self.alice.refresh_from_db()
        self.assertFalse(self.alice.is_group_leader)
        self.assertIsNone(Group.objects.get(pk=self.group.pk).leader_id)

    def test_model_clean_rejects_unflagged_leader(self):
        self.group.leader = self.alice
        with self.assertRaises(ValidationError):
            self.group.clean()

    def test_unflagging_a_student_drops_leadership(self):
        self.alice.is_group_leader = True
        self.alice.save()
        self.group.leader = self.alice
        self.group.save()

        self.client.force_authenticate(self.admin)
        response = self.client.patch(
            f'/api/academics/students/{self.alice.pk}/', {'is_group_leader': False}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.group.refresh_from_db()
        self.assertIsNone(self.group.leader_id)


class GroupCrudTest(AcademicsAPITestCase):

    def test_duplicate_group_name_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academics/groups/', {'name': 'isc-6a'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_deleting_group_with_students_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/academics/groups/{self.group.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['status_code'], 409)
        self.assertIn('students', response.data['detail'])
        self.assertTrue(Group.objects.filter(pk=self.group.pk).exists())

    def test_deleting_teacher_with_slots_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/academics/teachers/{self.teacher.pk}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Teacher.objects.filter(pk=self.teacher.pk).exists())

    def test_deleting_empty_group_succeeds(self):
        empty = Group.objects.create(name='ISC-8A')
        self.client.force_authenticate(self.admin)
        response = self.client.delete(f'/api/academics/groups/{empty.pk}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)

    def test_non_admin_cannot_create_group(self):
        self.client.force_authenticate(self.teacher.user)
        response = self.client.post('/api/academics/groups/', {'name': 'ISC-7A'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_everyone_reads_group_schedule(self):
        self.client.force_authenticate(self.bob.user)
        response = self.client.get(f'/api/academics/groups/{self.group.pk}/schedules/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], [self.slot.pk])


class StudentAndTeacherTest(AcademicsAPITestCase):

    def test_admin_creates_student_with_account(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academics/students/', {
            'username': 'dave', 'password': 'secret123', 'email': 'dave@example.com',
            'first_name': 'Dave', 'group_id': self.group.pk, 'enrollment_number': 'E-dave',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['user']['role'], Role.STUDENT)
        self.assertEqual(response.data['group']['id'], self.group.pk)
        self.assertTrue(User.objects.get(username='dave').check_password('secret123'))

    def test_duplicate_username_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academics/teachers/', {
            'username': 'alice', 'password': 'secret123', 'email': 'new@example.com',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(Teacher.objects.count(), 1)

    def test_students_cannot_list_students(self):
        self.client.force_authenticate(self.alice.user)
        response = self.client.get('/api/academics/students/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_filter_students_by_group(self):
        self.client.force_authenticate(self.proctor)
        response = self.client.get('/api/academics/students/', {'group': self.other_group.pk})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], [self.carol.pk])

    def test_teacher_schedule(self):
        self.client.force_authenticate(self.proctor)
        response = self.client.get(f'/api/academics/teachers/{self.teacher.pk}/schedules/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)

    def test_duplicate_subject_code_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/academics/subjects/', {'name': 'Other', 'code': 'net200'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)


class ScheduleSlotTest(AcademicsAPITestCase):

    def test_proctor_creates_slot(self):
        self.client.force_authenticate(self.proctor)
        response = self.client.post('/api/academics/schedules/', self.slot_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['group']['id'], self.other_group.pk)
        self.assertEqual(response.data['room']['name'], 'B-2')

    def test_teacher_cannot_create_slot(self):
        self.client.force_authenticate(self.teacher.user)
        response = self.client.post('/api/academics/schedules/', self.slot_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_room_double_booking_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            '/api/academics/schedules/', self.slot_payload(weekday=Weekday.MONDAY), format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(ScheduleSlot.objects.count(), 1)

    def test_end_must_follow_start(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(
            '/api/academics/schedules/', self.slot_payload(start_time='10:00', end_time='09:00'), format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_time', response.data)

    def test_mine_for_student_and_teacher(self):
        self.client.force_authenticate(self.bob.user)
        response = self.client.get('/api/academics/schedules/mine/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], [self.slot.pk])

        self.client.force_authenticate(self.carol.user)
        self.assertEqual(self.client.get('/api/academics/schedules/mine/').data, [])

        self.client.force_authenticate(self.teacher.user)
        response = self.client.get('/api/academics/schedules/mine/')
        self.assertEqual([s['id'] for s in response.data], [self.slot.pk])

    def test_leader_slots(self):
        self.bob.is_group_leader = True
        self.bob.save()
        self.group.leader = self.bob
        self.group.save()

        self.client.force_authenticate(self.bob.user)
        response = self.client.get('/api/academics/schedules/leader/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([s['id'] for s in response.data], [self.slot.pk])

    def test_leader_slots_refused_for_non_leader(self):
        self.client.force_authenticate(self.alice.user)
        response = self.client.get('/api/academics/schedules/leader/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(response.data['detail'], 'not a group leader')
