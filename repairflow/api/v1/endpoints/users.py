"""
Users Management API

Admin-only user CRUD plus the caller's notification preferences:
- Pagination (page, page_size)
- Search (by name, username, email)
- An admin cannot delete or deactivate their own account
"""
from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
from typing import List, Optional
from datetime import datetime

from repairflow.core.database import get_db
from repairflow.core.logging_config import logger
from repairflow.core.security import get_password_hash
from repairflow.models.user import User, UserRole, LoginLog
from repairflow.modules.auth.dependencies import get_current_user, require_admin
from repairflow.schemas.auth import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserListResponse,
    LoginLogResponse,
    NotificationPreferencesUpdate,
)
from repairflow.services.notification_service import notification_service
from repairflow.utils.pagination import paginate

router = APIRouter()


async def _ensure_unique(db: AsyncSession, username: Optional[str], email: Optional[str], exclude_id=None):
    conditions = []
    if username:
        conditions.append(func.lower(User.username) == username.lower())
    if email:
        conditions.append(func.lower(User.email) == email.lower())
    if not conditions:
        return
    query = select(User.id).where(or_(*conditions))
    if exclude_id:
        query = query.where(User.id != exclude_id)
    if (await db.execute(query)).first() is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Username or email already in use"
        )


async def _get_user_or_404(db: AsyncSession, user_id: str) -> User:
    user = await db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


# ==================== Notification preferences ====================
# Declared before /{user_id} so "me" is not taken for an id

@router.get("/me/notification-preferences")
async def get_notification_preferences(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return {"preferences": await notification_service.get_preferences(db, current_user.id)}


@router.put("/me/notification-preferences")
async def update_notification_preferences(
    data: NotificationPreferencesUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    try:
        preferences = await notification_service.set_preferences(db, current_user.id, data.preferences)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown notification type: {e}"
        )
    await db.commit()
    return {"preferences": preferences}


# ==================== Admin CRUD ====================

@router.get("", response_model=UserListResponse)
async def list_users(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    search: Optional[str] = Query(None, description="Search by name, username or email"),
    role: Optional[UserRole] = None,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    query = select(User)
    if search:
        term = f"%{search.strip()}%"
        query = query.where(or_(
            User.name.ilike(term),
            User.username.ilike(term),
            User.email.ilike(term),
        ))
    if role:
        query = query.where(User.role == role)
    return await paginate(db, query.order_by(User.created_at.desc()), page, page_size)


@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await _ensure_unique(db, data.username, data.email)

    user = User(
        username=data.username.strip(),
        email=data.email.lower(),
        name=data.name.strip(),
        hashed_password=get_password_hash(data.password),
        role=data.role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.log_business_event("user", "created", user.id, role=user.role.value, created_by=current_user.id)
    return user


@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    return await _get_user_or_404(db, user_id)


@router.get("/{user_id}/login-logs", response_model=List[LoginLogResponse])
async def get_login_logs(
    user_id: str,
    limit: int = Query(100, ge=1, le=100),
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    """Most recent login attempts for a user, newest first"""
    await _get_user_or_404(db, user_id)
    result = await db.execute(
        select(LoginLog)
        .where(LoginLog.user_id == user_id)
        .order_by(LoginLog.created_at.desc())
        .limit(limit)
    )
    return result.scalars().all()


@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: str,
    data: UserUpdate,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user_or_404(db, user_id)

    if user.id == current_user.id and data.is_active is False:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot deactivate your own account"
        )

    if data.email:
        await _ensure_unique(db, None, data.email, exclude_id=user.id)
        user.email = data.email.lower()
    if data.name is not None:
        user.name = data.name.strip()
    if data.role is not None:
        user.role = data.role
    if data.is_active is not None:
        user.is_active = data.is_active
    if data.password:
        user.hashed_password = get_password_hash(data.password)

    user.updated_at = datetime.utcnow()
    await db.commit()
    await db.refresh(user)

    logger.log_business_event("user", "updated", user.id, updated_by=current_user.id)
    return user


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    user = await _get_user_or_404(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="You cannot delete your own account"
        )

    await db.delete(user)
    await db.commit()

    logger.log_business_event("user", "deleted", user_id, deleted_by=current_user.id)
    return {"success": True, "message": "User deleted"}
