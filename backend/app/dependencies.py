"""
Dependency wiring for the FastAPI app: the caller's identity and the
process-wide real-time objects created in create_app().
"""

from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.database import get_db_session
from app.exceptions import AuthenticationError
from app.models.user import User
from app.services.auth_service import auth_service
from app.services.message_relay import MessageRelay
from app.services.presence import PresenceDirectory

# auto_error=False: a missing header should produce our 401 body, not FastAPI's 403
_bearer = HTTPBearer(auto_error=False)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
) -> Optional[str]:
    if credentials is None or credentials.scheme.lower() != "bearer":
        return None
    return credentials.credentials


async def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """
    Resolve the authenticated user or raise AuthenticationError (401).
    """
    if not token:
        raise AuthenticationError(message="Not authorized, no token")
    return await auth_service.authenticate(db, token)


# HTTPConnection covers both HTTP requests and WebSocket connections
def get_presence(connection: HTTPConnection) -> PresenceDirectory:
    return connection.app.state.presence


def get_relay(connection: HTTPConnection) -> MessageRelay:
    return connection.app.state.relay
