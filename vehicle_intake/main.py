# vehicle_intake/main.py
"""
FastAPI application entry point.
Includes API-key middleware for the intake endpoint, request timing,
a global error handler, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from vehicle_intake.routers import receive_vehicle, health
from vehicle_intake.context import new_request_id
from vehicle_intake.database import create_tables
from vehicle_intake.config import settings
from vehicle_intake.services.diagnostics_service import API_KEY_HEADER, api_key_matches, unauthorized_body
from vehicle_intake.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Vehicle Intake API",
    description="Receives sold vehicles, creates automatic orders or homologation cards.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS ─────────────────────────────────────────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Guards POST /receive-vehicle with the x-api-key header.
    Diagnostics (/receive-vehicle/test|auth-debug|config-debug and the
    matching query flags) stay open so integrators can debug their key.
    """
    guarded_paths = {"/receive-vehicle", "/receive-vehicle/"}

    async def dispatch(self, request: Request, call_next):
        if request.method != "POST" or request.url.path not in self.guarded_paths:
            return await call_next(request)
        if receive_vehicle.diagnostic_flag(request):
            return await call_next(request)

        request_id = getattr(request.state, "request_id", None) or new_request_id()
        if not settings.VEHICLE_API_KEY:
            logger.error(f"[AUTH][{request_id}] VEHICLE_API_KEY is not configured")
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    "error": "Server configuration error",
                    "message": "Intake API key is not configured on the server",
                    "request_id": request_id,
                },
            )

        if not api_key_matches(request.headers.get(API_KEY_HEADER), settings.VEHICLE_API_KEY):
            body = unauthorized_body(request.headers, settings, request_id)
            logger.warning(
                f"[AUTH][{request_id}] Rejected {request.client.host if request.client else '?'}: "
                f"{body['debug_info']['specific_issue']}"
            )
            return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content=body)
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    request.state.request_id = new_request_id()
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    response.headers["X-Request-ID"] = request.state.request_id
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "request_id": getattr(request.state, "request_id", None),
        },
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(receive_vehicle.router, tags=["🚚 Vehicle Intake"])
app.include_router(health.router, prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Vehicle Intake starting up...")
    create_tables()
    logger.info("✅ Database tables ready")
    if not settings.VEHICLE_API_KEY:
        logger.warning("⚠️  VEHICLE_API_KEY not set: /receive-vehicle will answer 500")
    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Vehicle Intake shutting down...")
