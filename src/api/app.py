"""
FastAPI application factory.

* Registers routes for bookings, vehicles, drivers, feedback, users and admin.
* Builds the realtime hub and the notifier via lifespan events; with
  ``EVENT_BACKEND=redis`` it also starts / stops the Redis relay worker.
* Applies rate-limiting and CORS middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from src.api.errors import ERROR_RESPONSES, dispatch_error_handler, request_validation_handler
from src.api.middleware import install_cors, limiter
from src.api.routes import admin, bookings, drivers, feedback, realtime, users, vehicles
from src.config import settings
from src.domain.errors import DispatchError
from src.infrastructure.event_bus import RedisNotifier
from src.infrastructure.realtime import ConnectionHub
from src.infrastructure.redis_client import close_redis, get_redis
from src.workers import relay as _relay

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Wire the hub and notifier on startup; tear them down on shutdown."""
    hub = ConnectionHub(send_timeout=settings.ws_send_timeout_seconds)
    app.state.hub = hub

    if settings.event_backend == "redis":
        client = await get_redis()
        app.state.notifier = RedisNotifier(client, settings.redis_channel_prefix)
        await _relay.start_relay(client, hub)
    else:
        app.state.notifier = hub
    logger.info("Event backend: %s", settings.event_backend)

    yield

    if settings.event_backend == "redis":
        await app.state.notifier.drain()
        await _relay.stop_relay()
        await close_redis()
    await hub.drain()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Delivery Dispatch API",
        description=(
            "Books goods deliveries, dispatches them to available drivers "
            "and tracks each booking from request to delivery, with "
            "OTP-confirmed pickup and live WebSocket notifications."
        ),
        version="1.0.0",
        lifespan=lifespan,
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors -> {"kind", "detail"}
    app.add_exception_handler(DispatchError, dispatch_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)

    install_cors(app)

    # Routers
    app.include_router(bookings.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(vehicles.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(drivers.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(feedback.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(users.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(admin.router, prefix="/api/v1", responses=ERROR_RESPONSES)
    app.include_router(realtime.router)

    return app
