# campus_parking/main.py
"""
FastAPI application entry point.
Includes CORS, request timing, typed error handlers, all routers,
the /ws real-time channel and the scheduled jobs.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from campus_parking.routers import zones, bookings, events, notifications, users, health, realtime
from campus_parking.database import create_tables
from campus_parking.config import settings
from campus_parking.errors import ParkingError, ValidationFailed
from campus_parking.services.change_notifier import notifier
from campus_parking.services.scheduler import run_expiry_job, start_scheduler, stop_scheduler
from campus_parking.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Campus Parking Reservation API",
    description="Zone availability, transactional bookings and live updates over WebSocket.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (mobile client and admin dashboard) ────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to known origins in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
@app.exception_handler(ParkingError)
async def parking_error_handler(request: Request, exc: ParkingError):
    logger.info(f"{request.method} {request.url.path} → {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    error = ValidationFailed(f"{field}: {first.get('msg', 'invalid value')}" if field else None)
    logger.info(f"{request.method} {request.url.path} → {error.status_code} {error.code}: {error.message}")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(zones.router,         prefix="/api/v1", tags=["🅿️  Zones"])
app.include_router(bookings.router,      prefix="/api/v1", tags=["🎫 Bookings"])
app.include_router(events.router,        prefix="/api/v1", tags=["📅 Events"])
app.include_router(notifications.router, prefix="/api/v1", tags=["🔔 Notifications"])
app.include_router(users.router,         prefix="/api/v1", tags=["👤 Users"])
app.include_router(health.router,        prefix="/api/v1", tags=["💚 Health"])
app.include_router(realtime.router,                        tags=["📡 Real-time"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Campus Parking backend starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📡 WebSocket channel at /ws")
    logger.info("📖 API docs at /docs")

    if settings.SCHEDULER_ENABLED:
        start_scheduler()
        # Close out anything that went overdue while the server was down
        await run_expiry_job()


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Campus Parking backend shutting down...")
    stop_scheduler()
    await notifier.close_all()
