from django.contrib.auth import get_user_model
from django.core.management import call_command
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework_simplejwt.tokens import AccessToken

from academics.models import Group, Student
from .identity import ActingUser
from .models import Role

User = get_user_model()


class AuthTest(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.proctor = User.objects.create_user(
            username='proctor', email='proctor@example.com', password='secret123', role=Role.PROCTOR,
        )

    def test_login_issues_role_claim(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'proctor', 'password': 'secret123'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['user']['role'], Role.PROCTOR)
        token = AccessToken(response.data['access'])
        self.assertEqual(token['role'], Role.PROCTOR)
        self.assertEqual(token['username'], 'proctor')

    def test_login_with_wrong_password(self):
        response = self.client.post(
            '/api/auth/login/', {'username': 'proctor', 'password': 'nope'}, format='json',
        )
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_role_is_used_for_the_request(self):
        token = AccessToken.for_user(self.proctor)
        token['role'] = Role.PROCTOR
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], Role.PROCTOR)

    def test_unknown_role_claim_is_rejected(self):
        token = AccessToken.for_user(self.proctor)
        token['role'] = 'janitor'
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_token_without_role_falls_back_to_user_row(self):
        token = AccessToken.for_user(self.proctor)
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], Role.PROCTOR)

    def test_anonymous_me_is_rejected(self):
        self.assertEqual(self.client.get('/api/users/me/').status_code, status.HTTP_401_UNAUTHORIZED)


class SuperuserRoleTest(APITestCase):

    def test_createsuperuser_command_gives_admin_role(self):
        call_command(
            'createsuperuser', interactive=False, username='root', email='root@example.com', verbosity=0,
        )
        user = User.objects.get(username='root')
        self.assertTrue(user.is_superuser)
        self.assertEqual(user.role, Role.ADMIN)

    def test_superuser_passes_admin_gates(self):
        root = User.objects.create_superuser('root', 'root@example.com', 'secret123')
        self.client.force_authenticate(root)
        self.assertEqual(self.client.get('/api/users/accounts/').status_code, status.HTTP_200_OK)

    def test_plain_users_still_default_to_student(self):
        user = User.objects.create_user('plain', 'plain@example.com', 'secret123')
        self.assertEqual(user.role, Role.STUDENT)


class CurrentUserTest(APITestCase):

    def test_student_sees_own_profile(self):
        group = Group.objects.create(name='ISC-6A')
        user = User.objects.create_user(
            username='alice', email='alice@example.com', password='secret123', role=Role.STUDENT,
        )
        student = Student.objects.create(user=user, group=group, enrollment_number='E-1', is_group_leader=True)
        group.leader = student
        group.save()

        self.client.force_authenticate(user)
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['role'], Role.STUDENT)
        self.assertEqual(response.data['student']['id'], student.pk)
        self.assertEqual(response.data['student']['leads_group'], group.pk)

    def test_acting_user_is_immutable(self):
        acting = ActingUser(id=1, role=Role.ADMIN)
        self.assertTrue(acting.is_staff_role)
        with self.assertRaises(AttributeError):
            acting.role = Role.STUDENT


class AccountTest(APITestCase):

    @classmethod
    def setUpTestData(cls):
        cls.admin = User.objects.create_user(
            username='admin', email='admin@example.com', password='secret123', role=Role.ADMIN,
        )
        cls.teacher = User.objects.create_user(
            username='prof', email='prof@example.com', password='secret123', role=Role.TEACHER,
        )

    def test_admin_creates_proctor(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/accounts/', {
            'username': 'proctor2', 'email': 'proctor2@example.com', 'password': 'secret123', 'role': Role.PROCTOR,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertNotIn('password', response.data)
        self.assertTrue(User.objects.get(username='proctor2').check_password('secret123'))

    def test_duplicate_email_conflicts(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/accounts/', {
            'username': 'someone', 'email': 'PROF@example.com', 'password': 'secret123', 'role': Role.PROCTOR,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['status_code'], 409)

    def test_password_required_on_create(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/users/accounts/', {
            'username': 'nopass', 'email': 'nopass@example.com', 'role': Role.ADMIN,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

    def test_accounts_are_admin_only(self):
        self.client.force_authenticate(self.teacher)
        response = self.client.get('/api/users/accounts/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_account_list_excludes_students_and_teachers(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/users/accounts/')
        self.assertEqual([u['username'] for u in response.data], ['admin'])
