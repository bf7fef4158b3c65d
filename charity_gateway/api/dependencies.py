"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from charity_gateway.domain.exceptions import AuthenticationError
from charity_gateway.infrastructure.clients.auth import AuthClient
from charity_gateway.infrastructure.clients.notifications import NotificationClient
from charity_gateway.infrastructure.database.repositories import UserRepository
from charity_gateway.infrastructure.database.session import get_db
from charity_gateway.services.notifications import NotificationDispatcher


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_auth_client() -> AuthClient:
    """Provide hosted identity client instance"""
    return AuthClient()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Provide best-effort notification dispatcher"""
    return NotificationDispatcher(NotificationClient())


async def get_current_user_id(
    request: Request,
    auth_client: AuthClient = Depends(get_auth_client),
) -> str:
    """Resolve the bearer token to a user id via the identity provider"""
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return await auth_client.get_user_id(token)
    except AuthenticationError:
        raise HTTPException(status_code=401, detail="Unauthorized")


def get_is_admin(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> bool:
    """Admin capability as a yes/no lookup"""
    return UserRepository(db).is_admin(user_id)


def require_admin(
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
) -> str:
    """Admin-only endpoints; returns the admin's user id"""
    if not is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user_id
