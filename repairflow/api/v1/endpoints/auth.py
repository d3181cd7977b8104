from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func, or_
from sqlalchemy.exc import SQLAlchemyError
from datetime import datetime, timedelta
from typing import Optional

from repairflow.core.database import get_db
from repairflow.core.security import (
    verify_password,
    get_password_hash,
    create_token_pair,
    decode_token,
    generate_reset_token,
)
from repairflow.core.logging_config import logger, set_user_id
from repairflow.core.rate_limiter import (
    limiter,
    get_client_ip,
    LOGIN_LIMIT,
    FORGOT_PASSWORD_LIMIT,
    RESET_PASSWORD_LIMIT,
)
from repairflow.models.user import User, PasswordResetToken, LoginLog
from repairflow.schemas.auth import (
    UserLogin,
    Token,
    LoginResponse,
    UserResponse,
    RefreshTokenRequest,
    ForgotPasswordRequest,
    ResetTokenValidation,
    ResetPasswordRequest,
)
from repairflow.schemas.settings import MessageResponse
from repairflow.modules.auth.dependencies import get_current_user
from repairflow.services import settings_service
from repairflow.services.email_service import email_service

RESET_TOKEN_TTL = timedelta(hours=1)
FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a password reset link has been sent."

router = APIRouter()


async def _record_login(
    db: AsyncSession, user: User, request: Request, success: bool, reason: Optional[str] = None
) -> None:
    """Write a login audit row and commit; a failure here never blocks the login"""
    user_agent = request.headers.get("user-agent")
    db.add(LoginLog(
        user_id=user.id,
        success=success,
        reason=reason,
        ip_address=request.client.host if request.client else None,
        user_agent=user_agent[:255] if user_agent else None,
    ))
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        await db.refresh(user)
        logger.log_error_with_context(e, "record_login", user_id=str(user.id))


@router.post("/login", response_model=LoginResponse)
@limiter.limit(LOGIN_LIMIT, key_func=get_client_ip)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db)
):
    """Login with email or username (rate limited: 10 per 15 minutes)"""
    client_ip = request.client.host if request.client else "unknown"
    identifier = credentials.identifier.strip()

    result = await db.execute(
        select(User).where(or_(
            func.lower(User.email) == identifier.lower(),
            func.lower(User.username) == identifier.lower(),
        ))
    )
    user = result.scalar_one_or_none()

    if not user or not verify_password(credentials.password, user.hashed_password):
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=identifier,
            reason="Invalid credentials",
            client_ip=client_ip
        )
        if user:
            await _record_login(db, user, request, False, "Invalid credentials")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials"
        )

    if not user.is_active:
        logger.log_auth_event(
            event="login",
            success=False,
            user_email=user.email,
            reason="Account inactive",
            client_ip=client_ip
        )
        await _record_login(db, user, request, False, "Account inactive")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Account is inactive"
        )

    user.last_login = datetime.utcnow()
    await _record_login(db, user, request, True)

    set_user_id(str(user.id))
    logger.log_auth_event(
        event="login",
        success=True,
        user_email=user.email,
        client_ip=client_ip,
        user_role=user.role.value
    )

    tokens = create_token_pair(user)
    return LoginResponse(**tokens, user=UserResponse.model_validate(user))


@router.post("/refresh", response_model=Token)
async def refresh_token(
    data: RefreshTokenRequest,
    db: AsyncSession = Depends(get_db)
):
    """Exchange a refresh token for a new token pair"""
    payload = decode_token(data.refresh_token)

    if payload.get("type") != "refresh":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type"
        )

    user_id = payload.get("sub")
    user = await db.get(User, user_id) if user_id else None

    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive"
        )

    return Token(**create_token_pair(user))


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Get current user info"""
    return current_user


@router.post("/forgot-password", response_model=MessageResponse)
@limiter.limit(FORGOT_PASSWORD_LIMIT, key_func=get_client_ip)
async def forgot_password(
    request: Request,
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """
    Email a password reset link.

    The response is the same whether or not the email belongs to a user.
    """
    result = await db.execute(select(User).where(func.lower(User.email) == data.email.lower()))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        logger.log_auth_event(
            event="forgot_password",
            success=False,
            user_email=data.email,
            reason="Unknown or inactive account"
        )
        return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)

    # Only the newest link stays valid
    await db.execute(delete(PasswordResetToken).where(PasswordResetToken.user_id == user.id))
    token = generate_reset_token()
    db.add(PasswordResetToken(
        user_id=user.id,
        token=token,
        expires_at=datetime.utcnow() + RESET_TOKEN_TTL,
    ))
    await db.commit()

    config = await email_service.load_smtp_config(db)
    company_name = await settings_service.get_setting(db, "company_name", "RepairFlow")
    sent = await email_service.send_password_reset_email(
        user.email, user.name, token, config=config, company_name=company_name
    )
    logger.log_auth_event(
        event="forgot_password",
        success=True,
        user_email=user.email,
        email_sent=sent
    )
    return MessageResponse(message=FORGOT_PASSWORD_MESSAGE)


async def _load_reset_token(db: AsyncSession, token: str):
    result = await db.execute(select(PasswordResetToken).where(PasswordResetToken.token == token))
    return result.scalar_one_or_none()


@router.get("/validate-reset-token", response_model=ResetTokenValidation)
async def validate_reset_token(
    token: str = Query(..., min_length=1),
    db: AsyncSession = Depends(get_db)
):
    reset = await _load_reset_token(db, token)
    if not reset:
        return ResetTokenValidation(valid=False, reason="Invalid token")
    if reset.used:
        return ResetTokenValidation(valid=False, reason="Token already used")
    if reset.is_expired:
        return ResetTokenValidation(valid=False, reason="Token expired")

    user = await db.get(User, reset.user_id)
    return ResetTokenValidation(valid=True, email=user.email if user else None)


@router.post("/reset-password", response_model=MessageResponse)
@limiter.limit(RESET_PASSWORD_LIMIT, key_func=get_client_ip)
async def reset_password(
    request: Request,
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db)
):
    """Set a new password using a reset token (rate limited: 5 per hour)"""
    reset = await _load_reset_token(db, data.token)
    if not reset or reset.used or reset.is_expired:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user = await db.get(User, reset.user_id)
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired reset token"
        )

    user.hashed_password = get_password_hash(data.password)
    user.updated_at = datetime.utcnow()
    reset.used = True
    await db.commit()

    logger.log_auth_event(event="password_reset", success=True, user_email=user.email)

    try:
        config = await email_service.load_smtp_config(db)
        company_name = await settings_service.get_setting(db, "company_name", "RepairFlow")
        await email_service.send_password_changed_email(
            user.email, user.name, config=config, company_name=company_name
        )
    except Exception as e:
        # The password is already changed; a missing confirmation email is not fatal
        logger.log_error_with_context(e, "password_changed_email", user_id=str(user.id))

    return MessageResponse(message="Password has been reset successfully")
