import fakeredis
import jwt
import pytest
from unittest import mock
from datetime import datetime, timedelta, timezone
from django.conf import settings
from django.test import TestCase, RequestFactory, override_settings

from apps.core.errors import AuthenticationError, ClientError, ConflictError
from .models import User
from .services import register, login
from .jwt_auth import (
    create_access_token,
    decode_token,
    get_user_id_from_token,
    get_user_id_from_request,
)


class RegisterTest(TestCase):
    def test_register_returns_token_for_new_user(self):
        result = register("ana@example.com", "s3cret-pass", "Ana Lima")

        user = User.objects.get(email="ana@example.com")
        self.assertEqual(result.user.id, user.id)
        self.assertEqual(result.user.full_name, "Ana Lima")
        self.assertEqual(get_user_id_from_token(result.token), user.id)
        self.assertTrue(user.check_password("s3cret-pass"))

    def test_register_requires_all_fields(self):
        for email, password, full_name in [
            ("", "pw", "Name"),
            ("a@example.com", "", "Name"),
            ("a@example.com", "pw", "  "),
        ]:
            with self.assertRaises(ClientError):
                register(email, password, full_name)
        self.assertEqual(User.objects.count(), 0)

    def test_register_duplicate_email_conflicts(self):
        register("dup@example.com", "pw-one", "First")
        with self.assertRaises(ConflictError):
            register("DUP@example.com", "pw-two", "Second")
        self.assertEqual(User.objects.count(), 1)


class LoginTest(TestCase):
    def setUp(self):
        register("bo@example.com", "correct-horse", "Bo")

    def test_login_with_valid_credentials(self):
        result = login("bo@example.com", "correct-horse")
        self.assertEqual(result.user.email, "bo@example.com")
        self.assertIsNotNone(decode_token(result.token))

    def test_login_wrong_password(self):
        with self.assertRaises(AuthenticationError):
            login("bo@example.com", "wrong")

    def test_login_unknown_email(self):
        with self.assertRaises(AuthenticationError):
            login("nobody@example.com", "correct-horse")

    def test_login_disabled_account(self):
        User.objects.filter(email="bo@example.com").update(is_active=False)
        with self.assertRaises(AuthenticationError):
            login("bo@example.com", "correct-horse")

    def test_login_requires_fields(self):
        with pytest.raises(ClientError):
            login("", "pw")


class JWTTest(TestCase):
    def setUp(self):
        self.user = User.objects.create(
            username="jwt", email="jwt@example.com", full_name="Jay"
        )
        self.factory = RequestFactory()

    def test_token_claims(self):
        payload = decode_token(create_access_token(self.user.id))
        self.assertEqual(payload['user_id'], str(self.user.id))
        self.assertIn('exp', payload)
        self.assertIn('iat', payload)

    @override_settings(JWT_EXPIRATION_HOURS=-1)
    def test_expired_token_rejected(self):
        token = create_access_token(self.user.id)
        self.assertIsNone(decode_token(token))
        self.assertIsNone(get_user_id_from_token(token))

    def test_token_signed_with_other_secret_rejected(self):
        token = jwt.encode(
            {
                'user_id': str(self.user.id),
                'exp': datetime.now(timezone.utc) + timedelta(hours=1),
            },
            settings.JWT_SECRET + "-other-secret-value",
            algorithm='HS256',
        )
        self.assertIsNone(get_user_id_from_token(token))

    def test_user_id_from_bearer_header(self):
        token = create_access_token(self.user.id)
        request = self.factory.get('/api/tasks/', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(get_user_id_from_request(request), self.user.id)

    def test_missing_or_malformed_header_is_anonymous(self):
        self.assertIsNone(get_user_id_from_request(self.factory.get('/api/tasks/')))
        request = self.factory.get('/api/tasks/', HTTP_AUTHORIZATION='Token abc')
        self.assertIsNone(get_user_id_from_request(request))
        request = self.factory.get('/api/tasks/', HTTP_AUTHORIZATION='Bearer not-a-jwt')
        self.assertIsNone(get_user_id_from_request(request))


class AuthAPITest(TestCase):
    def setUp(self):
        redis_client = fakeredis.FakeRedis()
        redis_client.flushall()
        patcher = mock.patch("apps.core.redis_client._client", redis_client)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_register_then_login_over_http(self):
        response = self.client.post(
            '/api/auth/register',
            data={"email": "http@example.com", "password": "pw-123456", "full_name": "Http User"},
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 201)
        self.assertIn('token', response.json())

        response = self.client.post(
            '/api/auth/login',
            data={"email": "http@example.com", "password": "pw-123456"},
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 200)
        token = response.json()['token']

        response = self.client.get('/api/auth/me', HTTP_AUTHORIZATION=f'Bearer {token}')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['email'], "http@example.com")

    def test_bad_credentials_are_401(self):
        response = self.client.post(
            '/api/auth/login',
            data={"email": "ghost@example.com", "password": "nope"},
            content_type='application/json',
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json(), {"detail": "invalid email or password"})

    def test_me_requires_token(self):
        response = self.client.get('/api/auth/me')
        self.assertEqual(response.status_code, 401)
