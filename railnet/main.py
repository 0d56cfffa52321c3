"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from railnet.api.v1.router import router as v1_router
from railnet.config import get_settings
from railnet.database import close_db
from railnet.exceptions import RailnetError
from railnet.gateway import close_gateway
from railnet.redis_client import close_redis, get_redis
from railnet.tasks import background_tasks


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("Starting Railnet Booking API...")

    await get_redis()
    logger.info("Redis connection established")

    await background_tasks.start()

    yield

    logger.info("Shutting down Railnet Booking API...")

    await background_tasks.stop()

    await close_gateway()
    await close_redis()
    await close_db()
    logger.info("Connections closed")


def create_app(run_background_tasks: bool = True) -> FastAPI:
    """Create and configure FastAPI application."""
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="""
## Railnet Booking API

Seat booking for scheduled trains with time-boxed payment holds.

- **Segment fares**: price computed from the distance between two stops
- **Seat holds**: one active ticket per seat and travel date, enforced by the database
- **Capacity ledger**: per-compartment booked/total counters per schedule
- **Payments**: SSLCommerz sessions, re-validated callbacks, idempotent confirmation
- **Reclamation**: unpaid tickets expire and give their seat back

### Authentication
All user endpoints require the `X-User-ID` header. Admin endpoints require
a user with the admin role.

### Workflow
1. Look up the seat map of a compartment
2. Book a seat (ticket is pending, payment deadline starts)
3. Initiate payment and follow the gateway URL
4. Gateway callback confirms the ticket, or the hold expires
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if run_background_tasks else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(v1_router, prefix="/api")

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": settings.APP_VERSION,
        }

    @app.exception_handler(RailnetError)
    async def railnet_exception_handler(request: Request, exc: RailnetError):
        """Map domain errors that escaped a route to their status code."""
        if exc.status_code >= 500:
            logger.error(f"{type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal Server Error",
                "detail": str(exc) if settings.DEBUG else None,
            },
        )

    return app


# Create application instance
app = create_app()


def run():
    """Run the application with uvicorn."""
    uvicorn.run(
        "railnet.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
    )


if __name__ == "__main__":
    run()
