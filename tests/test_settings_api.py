"""
Settings, SMS and Notification API Tests
"""
import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestSettingsAPI:

    async def test_single_key_roundtrip(self, client: AsyncClient, admin_headers):
        response = await client.put('/api/v1/settings/company_name', json={'value': 'Fix It Fast'},
                                    headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['value'] == 'Fix It Fast'

        response = await client.get('/api/v1/settings/company_name', headers=admin_headers)
        assert response.json()['value'] == 'Fix It Fast'

    async def test_unknown_key(self, client: AsyncClient, admin_headers):
        response = await client.get('/api/v1/settings/not_a_setting', headers=admin_headers)
        assert response.status_code == 404

    async def test_password_key_is_hidden(self, client: AsyncClient, admin_headers):
        response = await client.get('/api/v1/settings/smtp_password', headers=admin_headers)
        assert response.status_code == 403
        response = await client.put('/api/v1/settings/smtp_password', json={'value': 'plain'},
                                    headers=admin_headers)
        assert response.status_code == 403

    async def test_public_settings_need_no_auth(self, client: AsyncClient, admin_headers):
        await client.put('/api/v1/settings/company_name', json={'value': 'Fix It Fast'}, headers=admin_headers)
        response = await client.get('/api/v1/settings/public')
        assert response.status_code == 200
        assert response.json()['company_name'] == 'Fix It Fast'
        assert 'smtp_password' not in response.json()

    async def test_group_update(self, client: AsyncClient, admin_headers):
        response = await client.put('/api/v1/settings/group/ticket', json={
            'default_priority': 'HIGH',
            'auto_close_days': '45'
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['group'] == 'ticket'
        assert response.json()['updated']['default_priority'] == 'HIGH'

        listing = await client.get('/api/v1/settings', params={'category': 'ticket'}, headers=admin_headers)
        keys = {row['key']: row['value'] for row in listing.json()['settings']['ticket']}
        assert keys['auto_close_days'] == '45'

    async def test_group_update_applies_to_new_tickets(self, client: AsyncClient, admin_headers, customer):
        await client.put('/api/v1/settings/group/ticket', json={'default_priority': 'URGENT'},
                         headers=admin_headers)
        response = await client.post('/api/v1/tickets', json={
            'customer_id': customer.id,
            'device_brand': 'Apple',
            'device_issue': 'No power'
        }, headers=admin_headers)
        assert response.json()['priority'] == 'URGENT'

    async def test_group_update_invalid_value(self, client: AsyncClient, admin_headers):
        response = await client.put('/api/v1/settings/group/ticket', json={'default_priority': 'SOMEDAY'},
                                    headers=admin_headers)
        assert response.status_code == 422

    async def test_unknown_group(self, client: AsyncClient, admin_headers):
        response = await client.put('/api/v1/settings/group/nope', json={}, headers=admin_headers)
        assert response.status_code == 404

    async def test_admin_only(self, client: AsyncClient, staff_headers):
        response = await client.get('/api/v1/settings', headers=staff_headers)
        assert response.status_code == 403

    async def test_reset_restores_defaults(self, client: AsyncClient, admin_headers):
        await client.put('/api/v1/settings/company_name', json={'value': 'Fix It Fast'}, headers=admin_headers)
        await client.put('/api/v1/settings/is_installed', json={'value': 'true'}, headers=admin_headers)
        await client.put('/api/v1/settings/custom_banner', json={'value': 'Closed Monday'}, headers=admin_headers)

        response = await client.post('/api/v1/settings/reset', json={'confirmation': 'RESET'},
                                     headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['data']['restored'] > 0

        company = await client.get('/api/v1/settings/company_name', headers=admin_headers)
        assert company.json()['value'] == 'RepairShop'
        installed = await client.get('/api/v1/settings/is_installed', headers=admin_headers)
        assert installed.json()['value'] == 'true'
        custom = await client.get('/api/v1/settings/custom_banner', headers=admin_headers)
        assert custom.status_code == 404

    async def test_reset_needs_confirmation(self, client: AsyncClient, admin_headers, staff_headers):
        await client.put('/api/v1/settings/company_name', json={'value': 'Fix It Fast'}, headers=admin_headers)

        response = await client.post('/api/v1/settings/reset', json={'confirmation': 'yes'}, headers=admin_headers)
        assert response.status_code == 400
        response = await client.post('/api/v1/settings/reset', json={'confirmation': 'RESET'},
                                     headers=staff_headers)
        assert response.status_code == 403

        company = await client.get('/api/v1/settings/company_name', headers=admin_headers)
        assert company.json()['value'] == 'Fix It Fast'


@pytest.mark.asyncio
class TestEmailSettings:

    async def test_save_keeps_password_secret(self, client: AsyncClient, admin_headers):
        response = await client.put('/api/v1/settings/email', json={
            'smtp_host': 'smtp.example.com',
            'smtp_port': 2525,
            'smtp_user': 'mailer',
            'smtp_password': 'hunter22',
            'email_from': 'shop@example.com',
            'email_from_name': 'Fix It Fast'
        }, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data['configured'] is True
        assert data['smtp_port'] == 2525
        assert data['has_password'] is True
        assert 'smtp_password' not in data

        listing = await client.get('/api/v1/settings', headers=admin_headers)
        stored_keys = [row['key'] for rows in listing.json()['settings'].values() for row in rows]
        assert 'smtp_host' in stored_keys
        assert 'smtp_password' not in stored_keys

    async def test_blank_password_keeps_stored_one(self, client: AsyncClient, admin_headers):
        body = {
            'smtp_host': 'smtp.example.com',
            'smtp_user': 'mailer',
            'smtp_password': 'hunter22',
            'email_from': 'shop@example.com',
            'email_from_name': 'Fix It Fast'
        }
        await client.put('/api/v1/settings/email', json=body, headers=admin_headers)
        body['smtp_password'] = ''
        response = await client.put('/api/v1/settings/email', json=body, headers=admin_headers)
        assert response.json()['has_password'] is True

    async def test_test_email_requires_configuration(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/v1/settings/email/test', json={'to_email': 'me@example.com'},
                                     headers=admin_headers)
        assert response.status_code == 400


@pytest.mark.asyncio
class TestSMSAPI:

    async def test_list_templates(self, client: AsyncClient, staff_headers):
        response = await client.get('/api/v1/sms/templates', headers=staff_headers)
        assert response.status_code == 200
        ids = [t['template_id'] for t in response.json()]
        assert 'ticket_created' in ids
        assert all(t['is_default'] for t in response.json())

    async def test_template_override_lifecycle(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/v1/sms/templates', json={
            'template_id': 'ticket_repaired',
            'language': 'fr',
            'name': 'Reparation terminee',
            'message': 'Bonjour {customer_name}, votre appareil est pret.'
        }, headers=admin_headers)
        assert response.status_code == 201
        template = response.json()
        assert template['variables'] == ['customer_name']

        duplicate = await client.post('/api/v1/sms/templates', json={
            'template_id': 'ticket_repaired',
            'language': 'fr',
            'name': 'Again',
            'message': 'Again'
        }, headers=admin_headers)
        assert duplicate.status_code == 409

        updated = await client.put(f"/api/v1/sms/templates/{template['id']}", json={
            'message': 'Bonjour {customer_name}, {ticket_number} est pret.'
        }, headers=admin_headers)
        assert updated.json()['variables'] == ['customer_name', 'ticket_number']

        deleted = await client.delete(f"/api/v1/sms/templates/{template['id']}", headers=admin_headers)
        assert deleted.status_code == 200

    async def test_send_disabled(self, client: AsyncClient, staff_headers):
        response = await client.post('/api/v1/sms/send', json={
            'phone_number': '+1 555 0100',
            'message': 'Hello'
        }, headers=staff_headers)
        assert response.status_code == 400

    async def test_send_with_template(self, client: AsyncClient, admin_headers, staff_headers, ticket):
        await client.put('/api/v1/settings/sms_enabled', json={'value': 'true'}, headers=admin_headers)
        response = await client.post('/api/v1/sms/send', json={
            'phone_number': '+1 555 0100',
            'template_id': 'ticket_created',
            'ticket_id': ticket.id
        }, headers=staff_headers)
        assert response.status_code == 200
        data = response.json()
        assert data['success'] is True
        assert data['provider'] == 'log'
        assert ticket.ticket_number in data['message']

    async def test_send_needs_message_or_template(self, client: AsyncClient, staff_headers):
        response = await client.post('/api/v1/sms/send', json={'phone_number': '+1 555 0100'},
                                     headers=staff_headers)
        assert response.status_code == 422


@pytest.mark.asyncio
class TestNotificationsAPI:

    async def test_assignment_notification(self, client: AsyncClient, staff_headers, technician_user,
                                           technician_headers, customer):
        await client.post('/api/v1/tickets', json={
            'customer_id': customer.id,
            'device_brand': 'Apple',
            'device_issue': 'Broken port',
            'assigned_to_id': technician_user.id
        }, headers=staff_headers)

        count = await client.get('/api/v1/notifications/unread-count', headers=technician_headers)
        assert count.json()['count'] == 1

        listing = await client.get('/api/v1/notifications', headers=technician_headers)
        notification = listing.json()['items'][0]
        assert notification['type'] == 'ASSIGNMENT'
        assert notification['read'] is False

        read = await client.patch(f"/api/v1/notifications/{notification['id']}/read", headers=technician_headers)
        assert read.json()['read'] is True

        count = await client.get('/api/v1/notifications/unread-count', headers=technician_headers)
        assert count.json()['count'] == 0

        deleted = await client.delete(f"/api/v1/notifications/{notification['id']}", headers=technician_headers)
        assert deleted.status_code == 200

    async def test_disabled_type_is_skipped(self, client: AsyncClient, staff_headers, technician_user,
                                            technician_headers, customer):
        await client.put('/api/v1/users/me/notification-preferences', json={
            'preferences': {'ASSIGNMENT': False}
        }, headers=technician_headers)
        await client.post('/api/v1/tickets', json={
            'customer_id': customer.id,
            'device_brand': 'Apple',
            'device_issue': 'Broken port',
            'assigned_to_id': technician_user.id
        }, headers=staff_headers)

        listing = await client.get('/api/v1/notifications', headers=technician_headers)
        assert listing.json()['total'] == 0

    async def test_mark_all_read(self, client: AsyncClient, staff_headers, technician_user,
                                 technician_headers, customer):
        for issue in ('Broken port', 'Dead battery'):
            await client.post('/api/v1/tickets', json={
                'customer_id': customer.id,
                'device_brand': 'Apple',
                'device_issue': issue,
                'assigned_to_id': technician_user.id
            }, headers=staff_headers)

        response = await client.post('/api/v1/notifications/read-all', headers=technician_headers)
        assert response.json()['updated'] == 2

    async def test_other_users_notification(self, client: AsyncClient, staff_headers):
        response = await client.patch('/api/v1/notifications/unknown/read', headers=staff_headers)
        assert response.status_code == 404
