"""
Public Tracking and Satisfaction Rating Tests
"""
import pytest
from httpx import AsyncClient


async def _track(client: AsyncClient, ticket_number: str, code: str):
    return await client.get('/api/v1/track', params={'ticket': ticket_number, 'code': code})


@pytest.mark.asyncio
class TestTracking:

    async def test_lookup(self, client: AsyncClient, ticket):
        response = await _track(client, f' {ticket.ticket_number.lower()} ', ticket.tracking_code.lower())
        assert response.status_code == 200
        data = response.json()
        assert data['ticket_number'] == ticket.ticket_number
        assert data['tracking_code'] == f'XXXX-{ticket.tracking_code[-4:]}'
        assert data['customer_first_name'] == 'Jane'
        assert data['status'] == 'RECEIVED'
        assert data['status_info']['label'] == 'Received'
        assert data['progress'] == 17
        assert data['estimated_completion'] is not None
        assert data['final_price'] is None
        assert data['can_submit_rating'] is False
        assert data['timeline'][0]['label'] == 'Received'
        # Notes are hidden unless the shop opts in
        assert data['timeline'][0]['notes'] is None

    async def test_wrong_code(self, client: AsyncClient, ticket):
        response = await _track(client, ticket.ticket_number, 'WRONGONE')
        assert response.status_code == 404
        assert response.json()['detail'] == 'Unable to locate ticket. Please verify your information.'
        assert response.json()['details'] == {}

    async def test_missing_parameters(self, client: AsyncClient, db_session):
        response = await client.get('/api/v1/track', params={'ticket': 'T1'})
        assert response.status_code == 422

    async def test_display_flags(self, client: AsyncClient, repaired_ticket, admin_headers):
        await client.put('/api/v1/settings/show_price_on_tracking', json={'value': 'true'}, headers=admin_headers)
        await client.put('/api/v1/settings/show_notes_on_tracking', json={'value': 'true'}, headers=admin_headers)
        await client.put('/api/v1/settings/show_eta_on_tracking', json={'value': 'false'}, headers=admin_headers)

        response = await _track(client, repaired_ticket['ticket_number'], repaired_ticket['tracking_code'])
        data = response.json()
        assert data['final_price'] == 150.0
        assert data['estimated_completion'] is None
        assert data['timeline'][0]['notes'] is not None
        assert data['can_submit_rating'] is True
        assert data['completed_at'] is not None

    async def test_tracking_disabled(self, client: AsyncClient, ticket, admin_headers):
        await client.put('/api/v1/settings/enable_public_tracking', json={'value': 'false'}, headers=admin_headers)
        response = await _track(client, ticket.ticket_number, ticket.tracking_code)
        assert response.status_code == 403

    async def test_five_lookups_per_five_minutes(self, client: AsyncClient, ticket, rate_limits):
        # Failed lookups count against the limit too
        for code in ('WRONGONE', ticket.tracking_code, 'WRONGTWO', ticket.tracking_code, 'WRONGTRE'):
            response = await _track(client, ticket.ticket_number, code)
            assert response.status_code in (200, 404)

        response = await _track(client, ticket.ticket_number, ticket.tracking_code)
        assert response.status_code == 429
        assert response.headers['Retry-After'] == '300'
        assert response.json()['code'] == 'RATE_LIMITED'


@pytest.mark.asyncio
class TestSatisfaction:

    async def test_rate_with_tracking_code(self, client: AsyncClient, repaired_ticket):
        ticket_id = repaired_ticket['id']
        response = await client.post(f'/api/v1/tickets/{ticket_id}/satisfaction', json={
            'rating': 5,
            'comment': ' Great work ',
            'verification_method': 'TOKEN',
            'ticket_number': repaired_ticket['ticket_number'].lower(),
            'tracking_code': repaired_ticket['tracking_code']
        })
        assert response.status_code == 201
        assert response.json()['verification_method'] == 'TOKEN'
        assert response.json()['comment'] == 'Great work'

        stored = await client.get(f'/api/v1/tickets/{ticket_id}/satisfaction')
        assert stored.json()['rating'] == 5

        tracked = await _track(client, repaired_ticket['ticket_number'], repaired_ticket['tracking_code'])
        assert tracked.json()['rating']['rating'] == 5
        assert tracked.json()['can_submit_rating'] is False

        duplicate = await client.post(f'/api/v1/tickets/{ticket_id}/satisfaction', json={
            'rating': 1,
            'verification_method': 'TOKEN',
            'ticket_number': repaired_ticket['ticket_number'],
            'tracking_code': repaired_ticket['tracking_code']
        })
        assert duplicate.status_code == 409
        assert duplicate.json()['code'] == 'DUPLICATE_RATING'

    async def test_rate_with_email(self, client: AsyncClient, repaired_ticket):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/satisfaction", json={
            'rating': 4,
            'verification_method': 'EMAIL',
            'email': 'Jane.Doe@example.com'
        })
        assert response.status_code == 201
        assert response.json()['verification_method'] == 'EMAIL'

    async def test_wrong_email(self, client: AsyncClient, repaired_ticket):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/satisfaction", json={
            'rating': 4,
            'verification_method': 'EMAIL',
            'email': 'someone@example.com'
        })
        assert response.status_code == 403

    async def test_rate_as_staff(self, client: AsyncClient, repaired_ticket, staff_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/satisfaction", json={
            'rating': 3,
            'verification_method': 'AUTH'
        }, headers=staff_headers)
        assert response.status_code == 201

    async def test_auth_without_token(self, client: AsyncClient, repaired_ticket):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/satisfaction", json={
            'rating': 3,
            'verification_method': 'AUTH'
        })
        assert response.status_code == 403

    async def test_unfinished_ticket(self, client: AsyncClient, ticket):
        response = await client.post(f'/api/v1/tickets/{ticket.id}/satisfaction', json={
            'rating': 5,
            'ticket_number': ticket.ticket_number,
            'tracking_code': ticket.tracking_code
        })
        assert response.status_code == 400

    async def test_override(self, client: AsyncClient, repaired_ticket, admin_headers, staff_headers):
        body = {'rating': 2, 'override': True}
        url = f"/api/v1/tickets/{repaired_ticket['id']}/satisfaction"

        disabled = await client.post(url, json=body, headers=admin_headers)
        assert disabled.status_code == 403

        await client.put('/api/v1/settings/allow_satisfaction_override', json={'value': 'true'},
                         headers=admin_headers)
        not_admin = await client.post(url, json=body, headers=staff_headers)
        assert not_admin.status_code == 403

        response = await client.post(url, json=body, headers=admin_headers)
        assert response.status_code == 201
        assert response.json()['verification_method'] == 'AUTH'

    async def test_no_rating_yet(self, client: AsyncClient, ticket):
        response = await client.get(f'/api/v1/tickets/{ticket.id}/satisfaction')
        assert response.status_code == 404
