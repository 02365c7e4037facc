"""
XFound Backend — Auth Route Handlers
======================================

What:  POST /api/auth/{signup, login, logout, forgot-password, reset-password/{token}}
How:   Thin handlers; AuthService owns every rule. Errors propagate to the
       global exception handlers (400/401/404/503).
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_db_session
from app.dependencies import get_bearer_token
from app.schemas.common import ErrorResponse, MessageResponse
from app.schemas.user import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    ResetPasswordRequest,
    SignupRequest,
)
from app.services.auth_service import auth_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/signup",
    status_code=201,
    response_model=AuthResponse,
    responses={400: {"model": ErrorResponse}},
    summary="Create an account",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.register_user(db, body)


@router.post(
    "/login",
    response_model=AuthResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Log in with email or username",
)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    return await auth_service.login(db, body)


@router.post(
    "/logout",
    response_model=MessageResponse,
    responses={401: {"model": ErrorResponse}},
    summary="Revoke the bearer token used for this request",
)
async def logout(
    token: Optional[str] = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.logout(db, token)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    responses={
        404: {"description": "No account with that email", "model": ErrorResponse},
        503: {"description": "Email could not be sent", "model": ErrorResponse},
    },
    summary="Email a password reset link",
)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.forgot_password(db, body.email)
    return MessageResponse(message="Password reset email sent")


@router.post(
    "/reset-password/{token}",
    response_model=MessageResponse,
    responses={400: {"description": "Invalid or expired token", "model": ErrorResponse}},
    summary="Set a new password using a reset token",
)
async def reset_password(
    token: str,
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db_session),
) -> MessageResponse:
    await auth_service.reset_password(db, token, body)
    return MessageResponse(message="Password reset successful")
