"""FastAPI dependencies."""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.core.redis_client import CacheManager, get_redis_client
from app.core.security import decode_access_token
from app.database import get_db
from app.repositories.appointments import SqlAppointmentStore
from app.repositories.practitioners import SqlPractitionerDirectory
from app.services.booking_service import BookingService
from app.services.slot_calculator import BusinessHours

# Security
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> dict[str, Any]:
    """
    Identify the caller from their bearer token.

    Args:
        credentials: Bearer token credentials

    Returns:
        Caller's ``id`` and ``role``

    Raises:
        HTTPException: If token is invalid or expired
    """
    payload = decode_access_token(credentials.credentials)

    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id_str = payload.get("sub")
    if user_id_str is None or not isinstance(user_id_str, str):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        user_id = UUID(user_id_str)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid user ID format",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return {"id": user_id, "role": payload["role"]}


def require_roles(*roles: str):
    """Build a dependency admitting only callers with one of ``roles``."""

    async def dependency(
        current_user: Annotated[dict[str, Any], Depends(get_current_user)],
    ) -> dict[str, Any]:
        if current_user["role"] not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(roles)}",
            )
        return current_user

    return dependency


def get_cache_manager() -> CacheManager:
    """Cache manager over the shared Redis client."""
    return CacheManager(get_redis_client())


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]
CacheManagerDep = Annotated[CacheManager, Depends(get_cache_manager)]


def get_booking_service(db: DatabaseSession, cache_manager: CacheManagerDep) -> BookingService:
    """Booking service wired to PostgreSQL and Redis."""
    opening, closing = settings.business_hours_window
    return BookingService(
        store=SqlAppointmentStore(db),
        directory=SqlPractitionerDirectory(
            db,
            cache_manager=cache_manager,
            cache_ttl=settings.practitioner_cache_ttl,
        ),
        business_hours=BusinessHours(start=opening, end=closing),
        duration=settings.appointment_duration,
    )


BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
