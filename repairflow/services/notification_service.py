"""
Notification Service - in-app notifications for staff

Notifications are best effort: a failure is logged and never fails the
request that triggered it.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, update, delete
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional, List, Dict

from repairflow.core.logging_config import logger
from repairflow.models.notification import Notification, NotificationPreference, NotificationType
from repairflow.models.user import User, UserRole
from repairflow.services.ticket_lifecycle import status_label


def get_status_change_message(ticket_number: str, old_status, new_status) -> str:
    return (
        f"Ticket {ticket_number} status changed from "
        f"{status_label(old_status)} to {status_label(new_status)}"
    )


class NotificationService:
    """Creates and reads per-user notifications"""

    async def _recipients(self, db: AsyncSession, user_id: Optional[str]) -> List[str]:
        if user_id:
            return [str(user_id)]
        result = await db.execute(
            select(User.id).where(User.role == UserRole.ADMIN, User.is_active.is_(True))
        )
        return [str(uid) for uid in result.scalars().all()]

    async def _disabled_for(
        self, db: AsyncSession, user_ids: List[str], notification_type: NotificationType
    ) -> set:
        if not user_ids:
            return set()
        result = await db.execute(
            select(NotificationPreference.user_id).where(
                NotificationPreference.user_id.in_(user_ids),
                NotificationPreference.type == notification_type,
                NotificationPreference.enabled.is_(False),
            )
        )
        return {str(uid) for uid in result.scalars().all()}

    async def create_notification(
        self,
        db: AsyncSession,
        notification_type: NotificationType,
        title: str,
        message: str,
        user_id: Optional[str] = None,
        ticket_id: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> int:
        """
        Notify one user, or every active admin when user_id is None.

        The actor (whoever caused the event) and users who switched this
        type off are skipped. Returns the number of notifications created.

        Rows are written inside a savepoint so a failed insert leaves the
        caller's transaction usable.
        """
        # The caller's own pending rows must fail loudly, outside the savepoint
        await db.flush()
        try:
            async with db.begin_nested():
                recipients = await self._recipients(db, user_id)
                disabled = await self._disabled_for(db, recipients, notification_type)
                created = 0
                for recipient in recipients:
                    if recipient in disabled or (actor_id and recipient == str(actor_id)):
                        continue
                    db.add(Notification(
                        user_id=recipient,
                        type=notification_type,
                        title=title,
                        message=message,
                        ticket_id=ticket_id,
                    ))
                    created += 1
            return created
        except SQLAlchemyError as e:
            logger.log_error_with_context(e, "create_notification", notification_type=notification_type.value)
            return 0

    def list_query(self, user_id: str, unread_only: bool = False):
        """Select for the user's notifications, newest first (paginated by the caller)"""
        query = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            query = query.where(Notification.read.is_(False))
        return query.order_by(Notification.created_at.desc())

    async def unread_count(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id, Notification.read.is_(False)
            )
        )
        return result.scalar() or 0

    async def get_for_user(self, db: AsyncSession, notification_id: str, user_id: str) -> Optional[Notification]:
        result = await db.execute(
            select(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def mark_all_read(self, db: AsyncSession, user_id: str) -> int:
        result = await db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.read.is_(False))
            .values(read=True)
        )
        return result.rowcount or 0

    async def delete(self, db: AsyncSession, notification_id: str, user_id: str) -> bool:
        result = await db.execute(
            delete(Notification).where(Notification.id == notification_id, Notification.user_id == user_id)
        )
        return bool(result.rowcount)

    # ==================== Preferences ====================

    async def get_preferences(self, db: AsyncSession, user_id: str) -> Dict[str, bool]:
        """Every notification type with its enabled flag (absent rows are enabled)"""
        result = await db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        stored = {pref.type: pref.enabled for pref in result.scalars().all()}
        return {t.value: stored.get(t, True) for t in NotificationType}

    async def set_preferences(self, db: AsyncSession, user_id: str, preferences: Dict[str, bool]) -> Dict[str, bool]:
        result = await db.execute(
            select(NotificationPreference).where(NotificationPreference.user_id == user_id)
        )
        existing = {pref.type: pref for pref in result.scalars().all()}

        for type_name, enabled in preferences.items():
            notification_type = NotificationType(type_name)
            pref = existing.get(notification_type)
            if pref is None:
                db.add(NotificationPreference(user_id=user_id, type=notification_type, enabled=enabled))
            else:
                pref.enabled = enabled
        await db.flush()
        return await self.get_preferences(db, user_id)


notification_service = NotificationService()
