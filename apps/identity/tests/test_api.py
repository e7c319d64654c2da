"""
Integration tests for auth API endpoints.
Tests registration, login, token handling and admin user management.
"""
import json
from datetime import timedelta
from django.test import TestCase, Client
from django.contrib.auth import get_user_model
from django.utils import timezone

from apps.identity.jwt_auth import issue_token
from apps.identity.models import UserRole


User = get_user_model()


class RegisterLoginAPITest(TestCase):
    """Test registration and login."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(
            username='existing',
            email='existing@test.com',
            password='testpass123',
        )

    def post(self, url, payload, **extra):
        return self.client.post(url, data=json.dumps(payload), content_type='application/json', **extra)

    def test_register_returns_token_and_user(self):
        response = self.post('/api/v1/auth/register', {
            'username': 'newbie',
            'email': 'Newbie@Test.com',
            'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 201)

        data = response.json()
        self.assertTrue(data['success'])
        self.assertTrue(data['token'])
        self.assertEqual(data['user']['email'], 'newbie@test.com')
        self.assertEqual(data['user']['role'], UserRole.USER)
        self.assertNotIn('password', data['user'])

    def test_register_ignores_requested_role(self):
        response = self.post('/api/v1/auth/register', {
            'username': 'sneaky',
            'email': 'sneaky@test.com',
            'password': 'testpass123',
            'role': 'admin',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(User.objects.get(username='sneaky').role, UserRole.USER)

    def test_register_duplicate_email(self):
        response = self.post('/api/v1/auth/register', {
            'username': 'another',
            'email': 'EXISTING@test.com',
            'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['code'], 'Conflict')
        self.assertIn('email', response.json()['errors'])

    def test_register_duplicate_username(self):
        response = self.post('/api/v1/auth/register', {
            'username': 'existing',
            'email': 'fresh@test.com',
            'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('username', response.json()['errors'])

    def test_register_weak_password(self):
        response = self.post('/api/v1/auth/register', {
            'username': 'weakling',
            'email': 'weak@test.com',
            'password': '123',
        })
        self.assertEqual(response.status_code, 400)
        self.assertFalse(User.objects.filter(username='weakling').exists())

    def test_login_with_email(self):
        response = self.post('/api/v1/auth/login', {'email': 'existing@test.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 200)
        token = response.json()['token']

        profile = self.client.get('/api/v1/auth/profile', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(profile.status_code, 200)
        self.assertEqual(profile.json()['username'], 'existing')

    def test_login_with_username(self):
        response = self.post('/api/v1/auth/login', {'username': 'existing', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 200)

    def test_login_wrong_password(self):
        response = self.post('/api/v1/auth/login', {'email': 'existing@test.com', 'password': 'wrong'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'InvalidCredentials')

    def test_login_unknown_user_looks_like_wrong_password(self):
        response = self.post('/api/v1/auth/login', {'email': 'nobody@test.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'InvalidCredentials')

    def test_login_deactivated(self):
        self.user.is_active = False
        self.user.save()
        response = self.post('/api/v1/auth/login', {'email': 'existing@test.com', 'password': 'testpass123'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'Deactivated')

    def test_login_requires_identifier(self):
        response = self.post('/api/v1/auth/login', {'password': 'testpass123'})
        self.assertEqual(response.status_code, 400)


class ProfileAPITest(TestCase):
    """Test authenticated profile endpoints."""

    def setUp(self):
        self.client = Client()
        self.user = User.objects.create_user(
            username='alice',
            email='alice@test.com',
            password='testpass123',
        )
        self.other = User.objects.create_user(
            username='bob',
            email='bob@test.com',
            password='testpass123',
        )
        self.token = issue_token(self.user.id, self.user.role)

    def auth(self, token=None):
        return {'HTTP_AUTHORIZATION': f'Bearer {token or self.token}'}

    def test_profile_requires_auth(self):
        response = self.client.get('/api/v1/auth/profile')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'MissingAuth')

    def test_profile_rejects_other_schemes(self):
        response = self.client.get('/api/v1/auth/profile', HTTP_AUTHORIZATION='Basic YWxpY2U6cHc=')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'MalformedAuth')

    def test_profile_never_exposes_password(self):
        response = self.client.get('/api/v1/auth/profile', **self.auth())
        self.assertEqual(response.status_code, 200)
        self.assertNotIn('password', response.json())
        self.assertEqual(response.json()['permissions'], [])

    def test_update_profile(self):
        response = self.client.put(
            '/api/v1/auth/profile',
            data=json.dumps({'first_name': 'Alice', 'last_name': 'Liddell'}),
            content_type='application/json',
            **self.auth(),
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['first_name'], 'Alice')

    def test_update_profile_taken_email(self):
        response = self.client.put(
            '/api/v1/auth/profile',
            data=json.dumps({'email': 'bob@test.com'}),
            content_type='application/json',
            **self.auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['code'], 'Conflict')

    def test_logout(self):
        response = self.client.post('/api/v1/auth/logout', **self.auth())
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.json()['success'])

    def test_change_password_revokes_older_tokens(self):
        old_token = issue_token(self.user.id, self.user.role, now=timezone.now() - timedelta(minutes=5))

        response = self.client.put(
            '/api/v1/auth/change-password',
            data=json.dumps({'current_password': 'testpass123', 'new_password': 'newpass456'}),
            content_type='application/json',
            **self.auth(old_token),
        )
        self.assertEqual(response.status_code, 200)
        new_token = response.json()['token']

        stale = self.client.get('/api/v1/auth/profile', **self.auth(old_token))
        self.assertEqual(stale.status_code, 401)
        self.assertEqual(stale.json()['code'], 'StaleCredential')

        fresh = self.client.get('/api/v1/auth/profile', **self.auth(new_token))
        self.assertEqual(fresh.status_code, 200)

        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('newpass456'))

    def test_change_password_wrong_current(self):
        response = self.client.put(
            '/api/v1/auth/change-password',
            data=json.dumps({'current_password': 'nope', 'new_password': 'newpass456'}),
            content_type='application/json',
            **self.auth(),
        )
        self.assertEqual(response.status_code, 400)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('testpass123'))


class UserManagementAPITest(TestCase):
    """Test admin-only user management."""

    def setUp(self):
        self.client = Client()
        self.admin_user = User.objects.create_user(
            username='admin_test',
            email='admin@test.com',
            password='testpass123',
            role=UserRole.ADMIN,
        )
        self.regular_user = User.objects.create_user(
            username='regular_test',
            email='regular@test.com',
            password='testpass123',
        )
        self.admin_token = issue_token(self.admin_user.id, self.admin_user.role)
        self.user_token = issue_token(self.regular_user.id, self.regular_user.role)

    def test_list_users_as_admin(self):
        response = self.client.get('/api/v1/auth/users', HTTP_AUTHORIZATION=f'Bearer {self.admin_token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['total'], 2)

    def test_list_users_filtered_by_role(self):
        response = self.client.get('/api/v1/auth/users?role=admin', HTTP_AUTHORIZATION=f'Bearer {self.admin_token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual([u['username'] for u in response.json()['items']], ['admin_test'])

    def test_list_users_as_user_forbidden(self):
        response = self.client.get('/api/v1/auth/users', HTTP_AUTHORIZATION=f'Bearer {self.user_token}')
        self.assertEqual(response.status_code, 403)

    def test_list_users_requires_auth(self):
        response = self.client.get('/api/v1/auth/users')
        self.assertEqual(response.status_code, 401)

    def test_promote_user(self):
        response = self.client.put(
            f'/api/v1/auth/users/{self.regular_user.id}/role',
            data=json.dumps({'role': 'admin'}),
            content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['role'], 'admin')

        # Existing token picks up the new role on its next use.
        response = self.client.get('/api/v1/auth/users', HTTP_AUTHORIZATION=f'Bearer {self.user_token}')
        self.assertEqual(response.status_code, 200)

    def test_invalid_role(self):
        response = self.client.put(
            f'/api/v1/auth/users/{self.regular_user.id}/role',
            data=json.dumps({'role': 'superuser'}),
            content_type='application/json',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 400)

    def test_deactivate_user_revokes_tokens(self):
        response = self.client.put(
            f'/api/v1/auth/users/{self.regular_user.id}/deactivate',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 200)
        self.assertFalse(response.json()['is_active'])

        response = self.client.get('/api/v1/auth/profile', HTTP_AUTHORIZATION=f'Bearer {self.user_token}')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['code'], 'Deactivated')

    def test_deactivate_unknown_user(self):
        response = self.client.put(
            '/api/v1/auth/users/00000000-0000-0000-0000-000000000000/deactivate',
            HTTP_AUTHORIZATION=f'Bearer {self.admin_token}',
        )
        self.assertEqual(response.status_code, 404)
