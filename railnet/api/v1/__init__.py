"""API v1 routers package."""

from railnet.api.v1.admin import router as admin_router
from railnet.api.v1.payments import router as payments_router
from railnet.api.v1.schedules import router as schedules_router
from railnet.api.v1.tickets import router as tickets_router

__all__ = [
    "tickets_router",
    "schedules_router",
    "payments_router",
    "admin_router",
]
