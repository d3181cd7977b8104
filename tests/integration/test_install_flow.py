"""
Integration test: first-run installer from an empty database to a locked install
"""
import pytest
from httpx import AsyncClient

# 1x1 transparent PNG
PNG_BYTES = bytes.fromhex(
    '89504e470d0a1a0a0000000d4948445200000001000000010806000000'
    '1f15c4890000000d49444154789c6360000002000100e221bc330000000049454e44ae426082'
)

ADMIN = {
    'username': 'owner',
    'email': 'Owner@FixItFast.example.com',
    'password': 'Password123',
    'name': 'Shop Owner'
}


@pytest.mark.asyncio
async def test_install_wizard(client: AsyncClient, db_session):
    status = await client.get('/api/v1/install/status')
    assert status.status_code == 200
    assert status.json()['is_installed'] is False
    assert status.json()['admin_exists'] is False

    environment = await client.get('/api/v1/install/environment')
    assert environment.status_code == 200
    assert environment.json()['checks']['jwt_secret']['ok'] is True

    # Finalize needs an administrator
    early = await client.post('/api/v1/install/finalize')
    assert early.status_code == 400

    admin = await client.post('/api/v1/install/admin', json=ADMIN)
    assert admin.status_code == 201
    assert admin.json()['role'] == 'ADMIN'
    assert admin.json()['email'] == 'owner@fixitfast.example.com'

    second = await client.post('/api/v1/install/admin', json={**ADMIN, 'username': 'other'})
    assert second.status_code == 409
    assert second.json()['code'] == 'ADMIN_EXISTS'

    company = await client.post('/api/v1/install/company', json={
        'company_name': 'Fix It Fast',
        'company_email': 'hello@fixitfast.example.com',
        'company_phone': '+1 555 0199',
        'country': 'us',
        'currency': 'eur'
    })
    assert company.status_code == 200

    preferences = await client.post('/api/v1/install/preferences', json={
        'sms_enabled': True,
        'theme': 'dark',
        'facebook_url': ''
    })
    assert preferences.status_code == 200

    branding = await client.post('/api/v1/install/branding', files={
        'logo': ('logo.png', PNG_BYTES, 'image/png')
    })
    assert branding.status_code == 200
    assert branding.json()['files']['company_logo'].startswith('/uploads/branding/logo-')

    rejected = await client.post('/api/v1/install/branding', files={
        'favicon': ('favicon.txt', b'not an image', 'text/plain')
    })
    assert rejected.status_code == 400

    sample = await client.post('/api/v1/install/sample-data')
    assert sample.json() == {'suppliers_created': 3, 'parts_created': 5, 'customers_created': 3}
    again = await client.post('/api/v1/install/sample-data')
    assert again.json()['parts_created'] == 0

    finalize = await client.post('/api/v1/install/finalize')
    assert finalize.status_code == 200

    status = await client.get('/api/v1/install/status')
    assert status.json()['is_installed'] is True
    assert status.json()['installed_at'] is not None

    public = await client.get('/api/v1/settings/public')
    assert public.json()['company_name'] == 'Fix It Fast'
    assert public.json()['currency'] == 'EUR'
    assert public.json()['theme'] == 'dark'

    login = await client.post('/api/v1/auth/login', json={
        'identifier': 'owner',
        'password': ADMIN['password']
    })
    assert login.status_code == 200


@pytest.mark.asyncio
async def test_steps_locked_after_install(client: AsyncClient, admin_user):
    finalize = await client.post('/api/v1/install/finalize')
    assert finalize.status_code == 200

    locked_calls = [
        client.get('/api/v1/install/environment'),
        client.post('/api/v1/install/admin', json={**ADMIN, 'username': 'late'}),
        client.post('/api/v1/install/company', json={
            'company_name': 'Late',
            'company_email': 'late@example.com',
            'company_phone': '1',
            'country': 'US',
            'currency': 'USD'
        }),
        client.post('/api/v1/install/preferences', json={}),
        client.post('/api/v1/install/sample-data'),
        client.post('/api/v1/install/finalize'),
    ]
    for call in locked_calls:
        response = await call
        assert response.status_code == 403
        assert response.json()['code'] == 'ALREADY_INSTALLED'
