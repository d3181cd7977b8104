"""
Notification Service Tests
"""
import pytest
from sqlalchemy import select, func

from repairflow.models.customer import Customer
from repairflow.models.notification import Notification, NotificationType
from repairflow.models.user import UserRole
from repairflow.services.notification_service import notification_service


@pytest.mark.asyncio
class TestCreateNotification:

    async def test_failed_insert_keeps_caller_transaction(self, db_session, admin_user):
        db_session.add(Customer(name='Walk In', phone='+1 555 0111'))

        created = await notification_service.create_notification(
            db_session,
            NotificationType.TICKET_CREATED,
            title=None,
            message='Title is required, so this insert fails',
            user_id=admin_user.id,
        )
        assert created == 0

        # The caller carries on and commits its own work
        db_session.add(Customer(name='Second Visit', phone='+1 555 0112'))
        await db_session.commit()

        customers = await db_session.scalar(select(func.count(Customer.id)))
        notifications = await db_session.scalar(select(func.count(Notification.id)))
        assert customers == 2
        assert notifications == 0

    async def test_admins_notified_except_actor(self, db_session, admin_user, user_factory):
        other_admin = await user_factory(UserRole.ADMIN)
        created = await notification_service.create_notification(
            db_session,
            NotificationType.LOW_STOCK,
            title='Low stock',
            message='Battery below reorder level',
            actor_id=admin_user.id,
        )
        await db_session.commit()

        assert created == 1
        rows = (await db_session.execute(select(Notification))).scalars().all()
        assert [row.user_id for row in rows] == [other_admin.id]
