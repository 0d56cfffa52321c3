"""API dependencies."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from railnet.auth import require_role
from railnet.database import get_db
from railnet.exceptions import Forbidden
from railnet.gateway import SSLCommerzGateway, get_gateway
from railnet.models.user import User, UserRole
from railnet.services.booking_service import BookingService
from railnet.services.payment_service import PaymentService
from railnet.services.reclamation_service import ReclamationService

# Type aliases
DBSession = Annotated[AsyncSession, Depends(get_db)]
Gateway = Annotated[SSLCommerzGateway, Depends(get_gateway)]


async def get_current_user(
    db: DBSession,
    x_user_id: Annotated[int | None, Header()] = None,
) -> User:
    """
    Get current user from the X-User-ID header.
    In a real application, this would verify JWT tokens, etc.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-ID header is required",
        )

    user = await db.get(User, x_user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unknown user",
        )
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


async def get_admin_user(current_user: CurrentUser) -> User:
    """Require the admin role."""
    try:
        return require_role(current_user, UserRole.ADMIN)
    except Forbidden as e:
        raise HTTPException(status_code=e.status_code, detail=str(e))


AdminUser = Annotated[User, Depends(get_admin_user)]


def get_booking_service(db: DBSession) -> BookingService:
    """Get booking service."""
    return BookingService(db)


def get_payment_service(db: DBSession, gateway: Gateway) -> PaymentService:
    """Get payment service."""
    return PaymentService(db, gateway)


def get_reclamation_service(db: DBSession) -> ReclamationService:
    """Get reclamation service."""
    return ReclamationService(db)


# Annotated dependencies
BookingServiceDep = Annotated[BookingService, Depends(get_booking_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
ReclamationServiceDep = Annotated[ReclamationService, Depends(get_reclamation_service)]
