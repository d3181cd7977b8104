"""
Authentication API Tests
Tests for: login, refresh, current user, password reset
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient
from sqlalchemy import select

from repairflow.models.user import PasswordResetToken, UserRole
from conftest import TEST_PASSWORD, TestSessionLocal


async def _reset_token_for(user_id: str) -> PasswordResetToken:
    async with TestSessionLocal() as session:
        result = await session.execute(
            select(PasswordResetToken).where(PasswordResetToken.user_id == user_id)
        )
        return result.scalar_one_or_none()


@pytest.mark.asyncio
class TestLogin:

    async def test_login_with_email(self, client: AsyncClient, staff_user):
        response = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': TEST_PASSWORD
        })
        assert response.status_code == 200
        data = response.json()
        assert data['access_token']
        assert data['refresh_token']
        assert data['token_type'] == 'bearer'
        assert data['user']['id'] == staff_user.id
        assert data['user']['role'] == 'STAFF'
        assert 'hashed_password' not in data['user']

    async def test_login_with_username_case_insensitive(self, client: AsyncClient, staff_user):
        response = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.username.upper(),
            'password': TEST_PASSWORD
        })
        assert response.status_code == 200

    async def test_login_wrong_password(self, client: AsyncClient, staff_user):
        response = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': 'WrongPassword1'
        })
        assert response.status_code == 401

    async def test_login_unknown_user(self, client: AsyncClient, db_session):
        response = await client.post('/api/v1/auth/login', json={
            'identifier': 'nobody@example.com',
            'password': TEST_PASSWORD
        })
        assert response.status_code == 401

    async def test_login_inactive_user(self, client: AsyncClient, user_factory):
        user = await user_factory(UserRole.STAFF, is_active=False)
        response = await client.post('/api/v1/auth/login', json={
            'identifier': user.email,
            'password': TEST_PASSWORD
        })
        assert response.status_code == 403

    async def test_login_missing_fields(self, client: AsyncClient, db_session):
        response = await client.post('/api/v1/auth/login', json={'identifier': 'x'})
        assert response.status_code == 422

    async def test_login_rate_limited(self, client: AsyncClient, staff_user, rate_limits):
        body = {'identifier': staff_user.email, 'password': 'wrong-password'}
        for _ in range(10):
            response = await client.post('/api/v1/auth/login', json=body)
            assert response.status_code == 401

        response = await client.post('/api/v1/auth/login', json=body)
        assert response.status_code == 429
        assert response.headers['Retry-After'] == '900'


@pytest.mark.asyncio
class TestLoginLogs:

    async def test_attempts_are_logged(self, client: AsyncClient, staff_user, admin_headers):
        await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': 'wrong-password'
        })
        await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.username,
            'password': TEST_PASSWORD
        }, headers={'User-Agent': 'front-desk-tablet'})

        response = await client.get(f'/api/v1/users/{staff_user.id}/login-logs', headers=admin_headers)
        assert response.status_code == 200
        logs = response.json()
        assert len(logs) == 2
        assert {log['success'] for log in logs} == {True, False}
        failed = next(log for log in logs if not log['success'])
        assert failed['reason'] == 'Invalid credentials'
        succeeded = next(log for log in logs if log['success'])
        assert succeeded['user_agent'] == 'front-desk-tablet'

    async def test_inactive_account_logged(self, client: AsyncClient, user_factory, admin_headers):
        user = await user_factory(UserRole.STAFF, is_active=False)
        await client.post('/api/v1/auth/login', json={'identifier': user.email, 'password': TEST_PASSWORD})

        logs = (await client.get(f'/api/v1/users/{user.id}/login-logs', headers=admin_headers)).json()
        assert [(log['success'], log['reason']) for log in logs] == [(False, 'Account inactive')]

    async def test_unknown_identifier_not_logged(self, client: AsyncClient, admin_user, admin_headers):
        await client.post('/api/v1/auth/login', json={'identifier': 'ghost', 'password': 'whatever'})
        logs = (await client.get(f'/api/v1/users/{admin_user.id}/login-logs', headers=admin_headers)).json()
        assert logs == []

    async def test_admin_only(self, client: AsyncClient, staff_user, staff_headers, admin_headers):
        response = await client.get(f'/api/v1/users/{staff_user.id}/login-logs', headers=staff_headers)
        assert response.status_code == 403

        response = await client.get('/api/v1/users/missing/login-logs', headers=admin_headers)
        assert response.status_code == 404


@pytest.mark.asyncio
class TestTokens:

    async def test_me(self, client: AsyncClient, admin_user, admin_headers):
        response = await client.get('/api/v1/auth/me', headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['email'] == admin_user.email

    async def test_me_without_token(self, client: AsyncClient, db_session):
        response = await client.get('/api/v1/auth/me')
        assert response.status_code in (401, 403)

    async def test_me_with_garbage_token(self, client: AsyncClient, db_session):
        response = await client.get('/api/v1/auth/me', headers={'Authorization': 'Bearer nonsense'})
        assert response.status_code == 401

    async def test_refresh(self, client: AsyncClient, staff_user):
        login = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': TEST_PASSWORD
        })
        response = await client.post('/api/v1/auth/refresh', json={
            'refresh_token': login.json()['refresh_token']
        })
        assert response.status_code == 200
        new_access = response.json()['access_token']

        me = await client.get('/api/v1/auth/me', headers={'Authorization': f'Bearer {new_access}'})
        assert me.status_code == 200

    async def test_refresh_rejects_access_token(self, client: AsyncClient, staff_user):
        login = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': TEST_PASSWORD
        })
        response = await client.post('/api/v1/auth/refresh', json={
            'refresh_token': login.json()['access_token']
        })
        assert response.status_code == 401


@pytest.mark.asyncio
class TestPasswordReset:

    async def test_forgot_password_same_answer_for_unknown_email(self, client: AsyncClient, staff_user):
        known = await client.post('/api/v1/auth/forgot-password', json={'email': staff_user.email})
        unknown = await client.post('/api/v1/auth/forgot-password', json={'email': 'ghost@example.com'})

        assert known.status_code == 200
        assert unknown.status_code == 200
        assert known.json()['message'] == unknown.json()['message']

    async def test_full_reset_flow(self, client: AsyncClient, staff_user):
        await client.post('/api/v1/auth/forgot-password', json={'email': staff_user.email})
        reset = await _reset_token_for(staff_user.id)
        assert reset is not None
        assert len(reset.token) == 32

        check = await client.get('/api/v1/auth/validate-reset-token', params={'token': reset.token})
        assert check.json() == {'valid': True, 'email': staff_user.email, 'reason': None}

        response = await client.post('/api/v1/auth/reset-password', json={
            'token': reset.token,
            'password': 'NewPassword9'
        })
        assert response.status_code == 200

        login = await client.post('/api/v1/auth/login', json={
            'identifier': staff_user.email,
            'password': 'NewPassword9'
        })
        assert login.status_code == 200

        # A token works once
        again = await client.post('/api/v1/auth/reset-password', json={
            'token': reset.token,
            'password': 'OtherPassword9'
        })
        assert again.status_code == 400
        used = await client.get('/api/v1/auth/validate-reset-token', params={'token': reset.token})
        assert used.json()['valid'] is False

    async def test_new_request_replaces_old_token(self, client: AsyncClient, staff_user):
        await client.post('/api/v1/auth/forgot-password', json={'email': staff_user.email})
        first = await _reset_token_for(staff_user.id)
        await client.post('/api/v1/auth/forgot-password', json={'email': staff_user.email})
        second = await _reset_token_for(staff_user.id)

        assert first.token != second.token
        check = await client.get('/api/v1/auth/validate-reset-token', params={'token': first.token})
        assert check.json()['reason'] == 'Invalid token'

    async def test_expired_token(self, client: AsyncClient, db_session, staff_user):
        db_session.add(PasswordResetToken(
            user_id=staff_user.id,
            token='a' * 32,
            expires_at=datetime.utcnow() - timedelta(minutes=1),
        ))
        await db_session.commit()

        check = await client.get('/api/v1/auth/validate-reset-token', params={'token': 'a' * 32})
        assert check.json()['valid'] is False
        assert check.json()['reason'] == 'Token expired'

        response = await client.post('/api/v1/auth/reset-password', json={
            'token': 'a' * 32,
            'password': 'NewPassword9'
        })
        assert response.status_code == 400

    @pytest.mark.parametrize('password', ['short1A', 'nouppercase1', 'NOLOWERCASE1', 'NoNumberHere'])
    async def test_weak_password_rejected(self, client: AsyncClient, db_session, password):
        response = await client.post('/api/v1/auth/reset-password', json={
            'token': 'whatever',
            'password': password
        })
        assert response.status_code == 422
