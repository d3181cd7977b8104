"""
RepairFlow - Test Configuration and Fixtures
"""
import os
import tempfile
from typing import AsyncGenerator

import pytest
from cryptography.fernet import Fernet
from faker import Faker
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

# Set testing environment before the app reads its settings
TEST_DATABASE_URL = 'sqlite+aiosqlite:///./test_repairflow.db'
os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = TEST_DATABASE_URL
os.environ['SECRET_KEY'] = 'test-secret-key-for-testing-only'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['EMAIL_ENCRYPTION_KEY'] = Fernet.generate_key().decode()
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['USE_SENDGRID'] = 'false'
os.environ['SENDGRID_API_KEY'] = ''
os.environ['SMTP_USER'] = ''
os.environ['SMTP_PASSWORD'] = ''
os.environ['LOG_FILE'] = ''
os.environ['UPLOAD_PATH'] = tempfile.mkdtemp(prefix='repairflow-uploads-')

from repairflow.main import app  # noqa: E402
from repairflow.core.database import Base, get_db  # noqa: E402
from repairflow.core.rate_limiter import limiter  # noqa: E402
from repairflow.core.security import get_password_hash, create_access_token  # noqa: E402
from repairflow.models.customer import Customer  # noqa: E402
from repairflow.models.inventory import Part  # noqa: E402
from repairflow.models.user import User, UserRole  # noqa: E402
from repairflow.schemas.ticket import TicketCreate  # noqa: E402
from repairflow.services.ticket_service import ticket_service  # noqa: E402

fake = Faker()

TEST_PASSWORD = 'Password123'

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Test client; every request gets its own session, like production"""
    async def override_get_db():
        async with TestSessionLocal() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


async def make_user(db: AsyncSession, role: UserRole, password: str = TEST_PASSWORD, **overrides) -> User:
    user = User(
        username=overrides.pop('username', fake.unique.user_name()),
        email=overrides.pop('email', fake.unique.email()),
        name=overrides.pop('name', fake.name()),
        hashed_password=get_password_hash(password),
        role=role,
        is_active=overrides.pop('is_active', True),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def headers_for(user: User) -> dict:
    token = create_access_token({
        'sub': str(user.id),
        'email': user.email,
        'role': user.role.value
    })
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def user_factory(db_session: AsyncSession):
    async def _make(role: UserRole = UserRole.STAFF, **overrides) -> User:
        return await make_user(db_session, role, **overrides)

    return _make


@pytest.fixture
def token_headers():
    return headers_for


@pytest.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.ADMIN)


@pytest.fixture
async def staff_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.STAFF)


@pytest.fixture
async def technician_user(db_session: AsyncSession) -> User:
    return await make_user(db_session, UserRole.TECHNICIAN)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return headers_for(staff_user)


@pytest.fixture
def technician_headers(technician_user: User) -> dict:
    return headers_for(technician_user)


@pytest.fixture
async def customer(db_session: AsyncSession) -> Customer:
    customer = Customer(
        name='Jane Doe',
        phone='+1 555 0100',
        email='jane.doe@example.com',
    )
    db_session.add(customer)
    await db_session.commit()
    await db_session.refresh(customer)
    return customer


@pytest.fixture
def rate_limits():
    """Enable the limiter for one test, with empty counters"""
    was_enabled = limiter.enabled
    limiter.reset()
    limiter.enabled = True
    yield limiter
    limiter.enabled = was_enabled
    limiter.reset()


@pytest.fixture
async def part(db_session: AsyncSession) -> Part:
    part = Part(
        name='iPhone 12 Screen',
        sku='IPH-12-SCR-000001',
        quantity=10,
        reorder_level=2,
        unit_price=40.0,
    )
    db_session.add(part)
    await db_session.commit()
    await db_session.refresh(part)
    return part


@pytest.fixture
async def ticket(db_session: AsyncSession, customer: Customer, admin_user: User):
    """RECEIVED ticket with a 120.00 estimate"""
    created = await ticket_service.create_ticket(
        db_session,
        TicketCreate(
            customer_id=customer.id,
            device_brand='Apple',
            device_model='iPhone 12',
            device_issue='Cracked screen',
            estimated_price=120.0,
        ),
        admin_user,
    )
    await db_session.commit()
    return created


@pytest.fixture
def advance(client: AsyncClient):
    """PATCH a ticket through each status in turn; returns the last response"""
    async def _advance(ticket_id: str, headers: dict, *statuses: str, **extra):
        response = None
        for index, status in enumerate(statuses):
            body = {'status': status}
            if index == len(statuses) - 1:
                body.update(extra)
            response = await client.patch(f'/api/v1/tickets/{ticket_id}', json=body, headers=headers)
            assert response.status_code == 200, response.text
        return response

    return _advance


@pytest.fixture
async def repaired_ticket(advance, ticket, admin_headers: dict) -> dict:
    """The ticket fixture moved to REPAIRED with a final price of 150.00"""
    response = await advance(ticket.id, admin_headers, 'IN_PROGRESS', 'REPAIRED', final_price=150.0)
    return response.json()
