"""API v1 main router."""

from fastapi import APIRouter

from railnet.api.v1.admin import router as admin_router
from railnet.api.v1.payments import router as payments_router
from railnet.api.v1.schedules import router as schedules_router
from railnet.api.v1.tickets import router as tickets_router

router = APIRouter(prefix="/v1")

router.include_router(tickets_router, prefix="/tickets", tags=["Tickets"])
router.include_router(schedules_router, prefix="/schedules", tags=["Schedules"])
router.include_router(payments_router, prefix="/payments", tags=["Payments"])
router.include_router(admin_router, prefix="/admin", tags=["Admin"])
