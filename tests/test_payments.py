"""
Payments, Expenses and Journal API Tests
"""
import re

import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
class TestTicketPayment:

    async def test_pay_in_full(self, client: AsyncClient, repaired_ticket, staff_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={
            'amount': 150,
            'method': 'card',
            'reference': 'AUTH-778'
        }, headers=staff_headers)

        assert response.status_code == 201
        data = response.json()
        assert data['paid'] is True
        assert data['total_paid'] == 150.0
        assert data['outstanding'] == 0
        assert data['payment']['method'] == 'CARD'
        assert re.fullmatch(r'PAY-\d{8}-0001', data['payment']['payment_number'])

    async def test_payment_numbers_are_sequential(self, client: AsyncClient, repaired_ticket, staff_headers):
        url = f"/api/v1/tickets/{repaired_ticket['id']}/pay"
        first = await client.post(url, json={'amount': 100, 'reason': 'Deposit today'}, headers=staff_headers)
        second = await client.post(url, json={'amount': 50}, headers=staff_headers)

        assert first.json()['paid'] is False
        assert first.json()['outstanding'] == 50.0
        assert second.json()['paid'] is True
        assert first.json()['payment']['payment_number'].endswith('-0001')
        assert second.json()['payment']['payment_number'].endswith('-0002')

    async def test_partial_needs_reason(self, client: AsyncClient, repaired_ticket, staff_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={
            'amount': 100,
            'reason': 'meh'
        }, headers=staff_headers)
        assert response.status_code == 400

    async def test_overpayment_rejected(self, client: AsyncClient, repaired_ticket, staff_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={
            'amount': 150.5,
            'reason': 'Extra tip for the tech'
        }, headers=staff_headers)
        assert response.status_code == 400

    async def test_only_repaired_tickets(self, client: AsyncClient, ticket, staff_headers):
        response = await client.post(f'/api/v1/tickets/{ticket.id}/pay', json={'amount': 120},
                                     headers=staff_headers)
        assert response.status_code == 400
        assert response.json()['detail'] == 'Only repaired tickets can be paid'

    async def test_unknown_method(self, client: AsyncClient, repaired_ticket, staff_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={
            'amount': 150,
            'method': 'cheque'
        }, headers=staff_headers)
        assert response.status_code == 422

    async def test_technician_cannot_take_payment(self, client: AsyncClient, repaired_ticket,
                                                  technician_headers):
        response = await client.post(f"/api/v1/tickets/{repaired_ticket['id']}/pay", json={'amount': 150},
                                     headers=technician_headers)
        assert response.status_code == 403

    async def test_payment_history_and_journal(self, client: AsyncClient, repaired_ticket,
                                               staff_headers, admin_headers):
        ticket_id = repaired_ticket['id']
        await client.post(f'/api/v1/tickets/{ticket_id}/pay', json={'amount': 150}, headers=staff_headers)

        payments = await client.get(f'/api/v1/tickets/{ticket_id}/payments', headers=staff_headers)
        assert len(payments.json()) == 1

        detail = await client.get(f'/api/v1/tickets/{ticket_id}', headers=staff_headers)
        assert detail.json()['total_paid'] == 150.0
        assert 'Payment recorded' in detail.json()['history'][-1]['notes']

        journal = await client.get('/api/v1/expenses/journal', params={'type': 'PAYMENT'}, headers=admin_headers)
        assert journal.json()['total'] == 1
        assert journal.json()['items'][0]['amount'] == 150.0


@pytest.mark.asyncio
class TestCashMovements:

    async def test_cash_payment(self, client: AsyncClient, ticket, staff_headers):
        response = await client.post('/api/v1/payments/cash', json={
            'ticket_id': ticket.id,
            'amount': 20,
            'currency': 'usd',
            'metadata': {'drawer': 2}
        }, headers=staff_headers)
        assert response.status_code == 201
        data = response.json()
        assert data['method'] == 'CASH'
        assert data['currency'] == 'USD'
        assert data['metadata'] == {'drawer': 2}

    async def test_cash_refund_is_negative(self, client: AsyncClient, ticket, staff_headers, admin_headers):
        response = await client.post('/api/v1/payments/cash-refund', json={
            'ticket_id': ticket.id,
            'amount': 15,
            'reason': 'Overcharged'
        }, headers=staff_headers)
        assert response.status_code == 201
        assert response.json()['amount'] == -15.0

        journal = await client.get('/api/v1/expenses/journal', params={'type': 'REFUND'}, headers=admin_headers)
        assert journal.json()['items'][0]['amount'] == -15.0

    async def test_cash_refund_needs_reason(self, client: AsyncClient, ticket, staff_headers):
        response = await client.post('/api/v1/payments/cash-refund', json={
            'ticket_id': ticket.id,
            'amount': 15,
            'reason': 'no'
        }, headers=staff_headers)
        assert response.status_code == 422

    async def test_unknown_ticket(self, client: AsyncClient, staff_headers):
        response = await client.post('/api/v1/payments/cash', json={
            'ticket_id': 'missing',
            'amount': 5
        }, headers=staff_headers)
        assert response.status_code == 404

    async def test_list_payments(self, client: AsyncClient, ticket, staff_headers):
        await client.post('/api/v1/payments/cash', json={
            'ticket_id': ticket.id,
            'amount': 20,
            'metadata': {'till': 'front'}
        }, headers=staff_headers)

        response = await client.get('/api/v1/payments', headers=staff_headers)
        assert response.status_code == 200
        data = response.json()
        assert data['total'] == 1
        assert data['items'][0]['metadata'] == {'till': 'front'}

        response = await client.get('/api/v1/payments', params={'method': 'CARD'}, headers=staff_headers)
        assert response.json()['total'] == 0

    async def test_technician_forbidden(self, client: AsyncClient, technician_headers):
        response = await client.get('/api/v1/payments', headers=technician_headers)
        assert response.status_code == 403


@pytest.mark.asyncio
class TestExpenses:

    async def test_expense_lifecycle(self, client: AsyncClient, admin_headers):
        response = await client.post('/api/v1/expenses', json={
            'name': 'Shop rent',
            'amount': 900,
            'type': 'SHOP',
            'category': 'Fixed'
        }, headers=admin_headers)
        assert response.status_code == 201
        expense_id = response.json()['id']

        journal = await client.get('/api/v1/expenses/journal', params={'type': 'EXPENSE'}, headers=admin_headers)
        assert journal.json()['items'][0]['amount'] == -900.0

        updated = await client.put(f'/api/v1/expenses/{expense_id}', json={'amount': 950}, headers=admin_headers)
        assert updated.json()['amount'] == 950.0

        listing = await client.get('/api/v1/expenses', params={'type': 'SHOP'}, headers=admin_headers)
        assert listing.json()['total'] == 1

        deleted = await client.delete(f'/api/v1/expenses/{expense_id}', headers=admin_headers)
        assert deleted.status_code == 200
        missing = await client.get(f'/api/v1/expenses/{expense_id}', headers=admin_headers)
        assert missing.status_code == 404

    @pytest.mark.parametrize('body', [
        {'name': 'ab', 'amount': 10},
        {'name': 'Coffee', 'amount': 0},
    ])
    async def test_invalid_expense(self, client: AsyncClient, admin_headers, body):
        response = await client.post('/api/v1/expenses', json=body, headers=admin_headers)
        assert response.status_code == 422

    async def test_staff_cannot_see_expenses(self, client: AsyncClient, staff_headers):
        response = await client.get('/api/v1/expenses', headers=staff_headers)
        assert response.status_code == 403
