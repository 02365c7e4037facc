"""
XFound Backend — Account & Authentication Service
===================================================

What:  Signup, login, logout, password reset, and bearer-token verification.
Why:   Items and chats are owned by users; every mutating endpoint needs to
       know who is calling.
How:   Passwords are hashed with PBKDF2-SHA256 (random salt per user).
       Access tokens are HS256 JWTs whose `sub` is the user id. Issued tokens
       are also stored in `auth_tokens`; a token is only accepted while its
       row exists, which is what makes logout effective before expiry.
Who:   The /api/auth routes and the `get_current_user` dependency.

Token verification order:
    1. signature + expiry (PyJWT)
    2. `sub` is a UUID
    3. token row still present (not logged out)
    4. user still exists
"""

import asyncio
import hashlib
import hmac
import logging
import secrets
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from sqlalchemy import delete, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.exceptions import (
    AuthenticationError,
    DatabaseError,
    NotFoundError,
    ValidationError,
    XFoundError,
)
from app.models.user import AuthToken, User
from app.schemas.user import AuthResponse, LoginRequest, ResetPasswordRequest, SignupRequest
from app.services.mail_service import mail_service

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6
PBKDF2_ITERATIONS = 150_000


# ══════════════════════════════════════════════════════════════════════════
# Password hashing
# ══════════════════════════════════════════════════════════════════════════

def hash_password(password: str) -> str:
    """Format: pbkdf2:sha256:<iterations>$<salt>$<hex digest>"""
    salt = secrets.token_hex(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2:sha256:{PBKDF2_ITERATIONS}${salt}${dk.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    """Constant-time check; malformed hashes simply don't match."""
    if not password_hash.startswith("pbkdf2:sha256:"):
        return False
    parts = password_hash.split("$")
    if len(parts) != 3:
        return False
    header, salt, stored_hash = parts
    try:
        iterations = int(header.split(":")[2])
    except (IndexError, ValueError):
        return False
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return hmac.compare_digest(dk.hex(), stored_hash)


# ══════════════════════════════════════════════════════════════════════════
# Access tokens
# ══════════════════════════════════════════════════════════════════════════

def create_access_token(user_id: uuid.UUID, expires_delta: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    expiry = now + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    payload = {
        "sub": str(user_id),
        "iat": int(now.timestamp()),
        "exp": int(expiry.timestamp()),
        # Two logins within the same second must still yield distinct tokens
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> uuid.UUID:
    """
    Returns the user id carried by a valid token.

    Raises:
        AuthenticationError: bad signature, expired, or malformed subject.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError(message="Token has expired")
    except jwt.InvalidTokenError:
        raise AuthenticationError(message="Invalid token")

    try:
        return uuid.UUID(str(payload.get("sub")))
    except ValueError:
        raise AuthenticationError(message="Invalid token")


class AuthService:
    """
    Account workflows.

    Error Handling Strategy:
        Business-rule failures raise ValidationError / AuthenticationError /
        NotFoundError with the message shown to the user. Unexpected
        SQLAlchemy errors are wrapped in DatabaseError.
    """

    # ── Signup / Login / Logout ───────────────────────────────────────────

    async def register_user(self, db: AsyncSession, data: SignupRequest) -> AuthResponse:
        if data.password != data.confirm_password:
            raise ValidationError(message="Passwords do not match", field="confirm_password")
        if len(data.password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        try:
            existing = await db.execute(
                select(User.id).where(
                    or_(User.email == data.email, User.username == data.username)
                )
            )
            if existing.first() is not None:
                raise ValidationError(message="User already exists")

            user = User(
                id=uuid.uuid4(),
                username=data.username,
                email=data.email,
                password_hash=await asyncio.to_thread(hash_password, data.password),
            )
            db.add(user)
            token = create_access_token(user.id)
            db.add(AuthToken(user_id=user.id, token=token))
            await db.flush()

        except XFoundError:
            raise
        except IntegrityError:
            # Lost a race against a concurrent signup with the same email/username
            raise ValidationError(message="User already exists")
        except SQLAlchemyError as e:
            logger.error("Database error during signup: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("User registered: %s (%s)", user.username, user.id)
        return AuthResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            token=token,
            message="User registered successfully",
        )

    async def login(self, db: AsyncSession, data: LoginRequest) -> AuthResponse:
        conditions = []
        if data.username:
            conditions.append(User.username == data.username)
        if data.email:
            conditions.append(User.email == data.email)

        try:
            result = await db.execute(select(User).where(or_(*conditions)).limit(1))
            user = result.scalars().first()

            # PBKDF2 is CPU-bound; it must stay off the event loop
            if user is None or not await asyncio.to_thread(
                verify_password, data.password, user.password_hash
            ):
                raise AuthenticationError(message="Invalid email or password")

            token = create_access_token(user.id)
            db.add(AuthToken(user_id=user.id, token=token))
            await db.flush()

        except XFoundError:
            raise
        except SQLAlchemyError as e:
            logger.error("Database error during login: %s", str(e), exc_info=True)
            raise DatabaseError(context={"error_type": type(e).__name__})

        logger.info("User logged in: %s", user.id)
        return AuthResponse(
            id=user.id,
            username=user.username,
            email=user.email,
            token=token,
            message="Logged in successfully",
        )

    async def logout(self, db: AsyncSession, token: Optional[str]) -> None:
        if not token:
            raise AuthenticationError(message="No token provided")

        result = await db.execute(delete(AuthToken).where(AuthToken.token == token))
        if result.rowcount == 0:
            raise AuthenticationError(message="Invalid token")
        logger.info("Token revoked")

    async def authenticate(self, db: AsyncSession, token: str) -> User:
        """Resolve a bearer token to its user (see module docstring for the order)."""
        user_id = decode_access_token(token)

        active = await db.execute(
            select(AuthToken.id).where(AuthToken.token == token, AuthToken.user_id == user_id)
        )
        if active.first() is None:
            raise AuthenticationError(message="Token has been revoked")

        user = await db.get(User, user_id)
        if user is None:
            raise AuthenticationError(message="User no longer exists")
        return user

    # ── Password reset ────────────────────────────────────────────────────

    async def forgot_password(self, db: AsyncSession, email: str) -> None:
        """
        Store a one-hour reset token and email the reset link.

        A delivery failure propagates, so the request's transaction rolls back
        and no unusable token is left behind.
        """
        result = await db.execute(select(User).where(User.email == email))
        user = result.scalars().first()
        if user is None:
            raise NotFoundError(resource="user")

        user.reset_password_token = secrets.token_hex(20)
        user.reset_password_expires = datetime.now(timezone.utc) + timedelta(
            seconds=settings.reset_token_ttl_seconds
        )
        await db.flush()

        reset_url = f"{settings.frontend_url}/reset-password/{user.reset_password_token}"
        minutes = settings.reset_token_ttl_seconds // 60
        await mail_service.send(
            to=user.email,
            subject="Password Reset Request",
            html=(
                "<p>You requested a password reset for your account.</p>"
                "<p>Click this link to reset your password:</p>"
                f'<a href="{reset_url}">{reset_url}</a>'
                f"<p>This link will expire in {minutes} minutes.</p>"
                "<p>If you didn't request this, please ignore this email.</p>"
            ),
        )

    async def reset_password(
        self, db: AsyncSession, token: str, data: ResetPasswordRequest
    ) -> None:
        if data.password != data.confirm_password:
            raise ValidationError(message="Passwords do not match", field="confirm_password")
        if len(data.password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                message=f"Password must be at least {MIN_PASSWORD_LENGTH} characters",
                field="password",
            )

        result = await db.execute(
            select(User).where(
                User.reset_password_token == token,
                User.reset_password_expires > datetime.now(timezone.utc),
            )
        )
        user = result.scalars().first()
        if user is None:
            raise ValidationError(message="Invalid or expired token")

        user.password_hash = await asyncio.to_thread(hash_password, data.password)
        user.reset_password_token = None
        user.reset_password_expires = None
        # A new password signs out every existing session
        await db.execute(delete(AuthToken).where(AuthToken.user_id == user.id))
        await db.flush()
        logger.info("Password reset for user %s", user.id)

        await mail_service.send(
            to=user.email,
            subject="Password Changed Successfully",
            html=(
                "<p>Your password has been successfully changed.</p>"
                "<p>If you didn't make this change, please contact us immediately.</p>"
            ),
        )


# ── Singleton Instance ────────────────────────────────────────────────────
auth_service = AuthService()
