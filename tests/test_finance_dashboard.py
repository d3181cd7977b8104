"""
Finance and Dashboard API Tests
"""
import pytest
from datetime import datetime, timedelta
from httpx import AsyncClient


@pytest.fixture
async def completed_ticket(client: AsyncClient, advance, ticket, part, admin_headers) -> dict:
    """Ticket with two 40.00 parts, repaired at 150.00, paid and collected"""
    await client.post(f'/api/v1/tickets/{ticket.id}/parts', json={
        'part_id': part.id,
        'quantity': 2
    }, headers=admin_headers)
    await advance(ticket.id, admin_headers, 'IN_PROGRESS', 'REPAIRED', final_price=150.0)
    paid = await client.post(f'/api/v1/tickets/{ticket.id}/pay', json={'amount': 150}, headers=admin_headers)
    assert paid.status_code == 201
    response = await advance(ticket.id, admin_headers, 'COMPLETED')
    return response.json()


@pytest.mark.asyncio
class TestFinance:

    async def test_summary(self, client: AsyncClient, completed_ticket, admin_headers):
        await client.post('/api/v1/expenses', json={'name': 'Cleaning kit', 'amount': 20}, headers=admin_headers)

        response = await client.get('/api/v1/finance/summary', params={'period': 'daily'}, headers=admin_headers)
        assert response.status_code == 200
        data = response.json()
        assert data['revenue'] == 150.0
        assert data['parts_cost'] == 80.0
        assert data['gross_profit'] == 70.0
        assert data['expenses'] == 20.0
        assert data['net_profit'] == 50.0
        assert data['ticket_count'] == 1

    async def test_paid_repaired_ticket_counts_as_revenue(self, client: AsyncClient, repaired_ticket,
                                                          admin_headers):
        await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={'amount': 150},
                          headers=admin_headers)
        response = await client.get('/api/v1/finance/summary', params={'period': 'daily'}, headers=admin_headers)
        assert response.json()['revenue'] == 150.0

    async def test_unpaid_repaired_ticket_is_not_revenue(self, client: AsyncClient, repaired_ticket,
                                                         admin_headers):
        response = await client.get('/api/v1/finance/summary', params={'period': 'daily'}, headers=admin_headers)
        assert response.json()['revenue'] == 0
        assert response.json()['gross_margin'] == 0

    async def test_custom_range_excludes_today(self, client: AsyncClient, completed_ticket, admin_headers):
        last_month = datetime.utcnow() - timedelta(days=40)
        response = await client.get('/api/v1/finance/summary', params={
            'start_date': last_month.isoformat(),
            'end_date': (last_month + timedelta(days=5)).isoformat()
        }, headers=admin_headers)
        assert response.json()['revenue'] == 0

    async def test_custom_range_with_offsets(self, client: AsyncClient, completed_ticket, admin_headers):
        today = datetime.utcnow()
        response = await client.get('/api/v1/finance/summary', params={
            'start_date': (today - timedelta(days=1)).strftime('%Y-%m-%dT00:00:00Z'),
            'end_date': today.strftime('%Y-%m-%dT12:00:00+00:00')
        }, headers=admin_headers)
        assert response.status_code == 200
        assert response.json()['revenue'] == 150.0

        daily = await client.get('/api/v1/finance/daily-summary', params={
            'date': today.strftime('%Y-%m-%dT12:00:00Z')
        }, headers=admin_headers)
        assert daily.status_code == 200
        assert daily.json()['revenue'] == 150.0

    async def test_comparison(self, client: AsyncClient, completed_ticket, admin_headers):
        response = await client.get('/api/v1/finance/comparison', params={'period': 'daily'},
                                    headers=admin_headers)
        data = response.json()
        assert data['current']['revenue'] == 150.0
        assert data['previous']['revenue'] == 0
        assert data['changes']['revenue'] == 100
        assert 'gross_margin' not in data['changes']

    async def test_daily_summary(self, client: AsyncClient, completed_ticket, admin_headers):
        response = await client.get('/api/v1/finance/daily-summary', headers=admin_headers)
        data = response.json()
        assert data['parts_used'] == 2
        assert data['returns_pending'] == 0
        assert data['revenue'] == 150.0

    async def test_revenue_trend(self, client: AsyncClient, completed_ticket, admin_headers):
        response = await client.get('/api/v1/finance/revenue-trend', params={'days': 7}, headers=admin_headers)
        trend = response.json()
        assert len(trend) == 7
        assert trend[-1]['date'] == datetime.utcnow().date().isoformat()
        assert trend[-1]['revenue'] == 150.0
        assert all(point['revenue'] == 0 for point in trend[:-1])

    async def test_revenue_trend_bounds(self, client: AsyncClient, admin_headers):
        response = await client.get('/api/v1/finance/revenue-trend', params={'days': 0}, headers=admin_headers)
        assert response.status_code == 422

    async def test_high_loss_devices(self, client: AsyncClient, admin_headers):
        for name, amount, device in [('Broken board', 60, 'IPHONE-12'), ('Lost screw kit', 15, 'IPHONE-12'),
                                     ('Dropped unit', 40, 'PIXEL-6'), ('Coffee', 5, None)]:
            await client.post('/api/v1/expenses', json={
                'name': name,
                'amount': amount,
                'type': 'PART_LOSS',
                'device_id': device
            }, headers=admin_headers)

        response = await client.get('/api/v1/finance/high-loss-devices', headers=admin_headers)
        assert response.json() == [
            {'device_id': 'IPHONE-12', 'total_loss': 75.0, 'expense_count': 2},
            {'device_id': 'PIXEL-6', 'total_loss': 40.0, 'expense_count': 1},
        ]

    async def test_admin_only(self, client: AsyncClient, staff_headers):
        response = await client.get('/api/v1/finance/summary', headers=staff_headers)
        assert response.status_code == 403


@pytest.mark.asyncio
class TestDashboard:

    async def test_sales(self, client: AsyncClient, completed_ticket, staff_headers):
        response = await client.get('/api/v1/dashboard/sales', headers=staff_headers)
        assert response.status_code == 200
        data = response.json()
        assert len(data['data']) == 7
        assert data['invoices'] == 1
        assert data['total_sales'] == 150.0
        assert data['total_cogs'] == 80.0
        assert data['data'][-1]['sales'] == 150.0
        assert ' to ' in data['date_range_label']

    async def test_sales_accepts_utc_suffix(self, client: AsyncClient, completed_ticket, staff_headers):
        start = (datetime.utcnow() - timedelta(days=3)).strftime('%Y-%m-%dT00:00:00Z')
        response = await client.get('/api/v1/dashboard/sales', params={'start_date': start},
                                    headers=staff_headers)
        assert response.status_code == 200
        assert response.json()['total_sales'] == 150.0

    async def test_sales_rejects_inverted_range(self, client: AsyncClient, staff_headers):
        response = await client.get('/api/v1/dashboard/sales', params={
            'start_date': '2024-03-10T00:00:00',
            'end_date': '2024-03-01T00:00:00'
        }, headers=staff_headers)
        assert response.status_code == 400

    async def test_period_stats(self, client: AsyncClient, completed_ticket, admin_headers):
        await client.post('/api/v1/expenses', json={'name': 'Glue', 'amount': 10}, headers=admin_headers)

        response = await client.get('/api/v1/dashboard/period-stats', params={'period': 'daily'},
                                    headers=admin_headers)
        data = response.json()
        assert data['period'] == 'daily'
        assert data['revenue'] == 150.0
        assert data['tickets_completed'] == 1
        assert data['expenses'] == 10.0
        assert data['profit'] == 140.0
        assert data['revenue_change'] == 100

    async def test_technician_forbidden(self, client: AsyncClient, technician_headers):
        response = await client.get('/api/v1/dashboard/sales', headers=technician_headers)
        assert response.status_code == 403
