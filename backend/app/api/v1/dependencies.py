"""
API Dependencies
Shared dependencies for authentication, Supabase access and the auto-call engine
"""
from typing import Optional
from fastapi import Depends, HTTPException, Request, status, Header
from supabase import create_client, Client
from pydantic import BaseModel
from dotenv import load_dotenv

from app.core.config import get_settings
from app.core.container import AutoCallContainer
from app.domain.services.call_event_handler import CallEventHandler
from app.workers.auto_call_scheduler import AutoCallScheduler

load_dotenv()


class CurrentUser(BaseModel):
    """Current authenticated user model"""
    id: str
    email: Optional[str] = None
    role: str = "user"


def get_supabase() -> Client:
    """
    Get Supabase client with validation.

    Raises:
        RuntimeError: If Supabase URL or SERVICE_KEY is not configured
    """
    settings = get_settings()

    if not settings.supabase_url:
        raise RuntimeError(
            "SUPABASE_URL is not configured. "
            "Set SUPABASE_URL environment variable."
        )
    if not settings.supabase_service_key:
        raise RuntimeError(
            "SUPABASE_SERVICE_KEY is not configured. "
            "Set SUPABASE_SERVICE_KEY environment variable."
        )

    return create_client(settings.supabase_url, settings.supabase_service_key)


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    supabase: Client = Depends(get_supabase)
) -> CurrentUser:
    """
    Dependency to get the current authenticated user from a Supabase JWT.

    Raises:
        HTTPException: If the header is missing or the token is invalid
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Extract token from "Bearer <token>"
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Use: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_response = supabase.auth.get_user(parts[1])
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Token validation failed: {str(e)}",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not user_response or not user_response.user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    auth_user = user_response.user
    return CurrentUser(id=str(auth_user.id), email=auth_user.email)


def get_auto_call_container(request: Request) -> AutoCallContainer:
    """
    The process-wide auto-call engine built at startup.

    Raises:
        HTTPException: 503 if the engine is not available
    """
    container = getattr(request.app.state, "auto_call", None)
    if container is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Auto-call engine is not initialized"
        )
    return container


def get_auto_call_scheduler(
    container: AutoCallContainer = Depends(get_auto_call_container)
) -> AutoCallScheduler:
    return container.scheduler


def get_event_handler(
    container: AutoCallContainer = Depends(get_auto_call_container)
) -> CallEventHandler:
    return container.event_handler
