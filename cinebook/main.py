# cinebook/main.py
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from cinebook.auth import AdminGateRejected
from cinebook.core.config import settings
from cinebook.database import models
from cinebook.database.database import SessionLocal, engine
from cinebook.routers import admin_routes, booking_routes, event_routes, health
from cinebook.workers.hold_timer_worker import HoldTimerWorker

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


# Lifespan events (startup/shutdown)
@asynccontextmanager
async def lifespan(app: FastAPI):
    # Ensure DB models/tables exist (migrations handle production schemas)
    models.Base.metadata.create_all(bind=engine)

    # Redis init (non-fatal: only the admin role cache depends on it)
    try:
        from cinebook.core.redis import get_redis
        await get_redis()
        logger.info("Redis connected successfully")
    except Exception as e:
        logger.warning("Redis connection failed (admin role cache disabled): %s", e)

    worker = None
    if settings.HOLD_WORKER_ENABLED:
        worker = HoldTimerWorker(session_factory=SessionLocal)
        worker.start()
    else:
        logger.info("Hold timer worker disabled (HOLD_WORKER_ENABLED=false)")
    app.state.hold_timer_worker = worker

    yield

    logger.info("Starting graceful shutdown...")
    if worker is not None:
        try:
            await worker.stop()
        except Exception as e:
            logger.error("Error stopping hold timer worker: %s", e)

    try:
        from cinebook.core.redis import close_redis
        await close_redis()
    except Exception as e:
        logger.error("Error closing Redis: %s", e)
    logger.info("Graceful shutdown complete")


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.PROJECT_NAME,
        description="Seat hold expiry, identity sync and booking notifications",
        version=settings.VERSION,
        lifespan=lifespan,
    )

    @app.exception_handler(AdminGateRejected)
    async def admin_gate_rejected(request: Request, exc: AdminGateRejected):
        return JSONResponse(status_code=exc.status_code, content={"success": False, "message": exc.message})

    app.include_router(event_routes.router, prefix="/api")
    app.include_router(booking_routes.router, prefix="/api")
    app.include_router(admin_routes.router, prefix="/api")
    app.include_router(health.router)

    @app.get("/")
    def root():
        return {"message": "CineBook jobs API is running"}

    return app


app = create_app()
