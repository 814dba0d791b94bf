# main.py
import logging
import os
from contextlib import asynccontextmanager
from typing import List

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware

from api import activities, auth, calendar, couples, medications, mood, sleep, todos
from api.middleware import ObservabilityMiddleware, get_request_id
from api.rate_limiter import limiter, rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded


logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
logger = logging.getLogger("wellness-api")

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup logs the Supabase configuration (masked); shutdown closes the
    realtime feeds and the couple store connection.
    """
    logger.info("=== Application Startup ===")

    supabase_url = os.getenv("SUPABASE_URL", "")
    anon_key = os.getenv("SUPABASE_ANON_KEY", "")
    service_key = os.getenv("SUPABASE_SERVICE_KEY", "")

    logger.warning(
        "SUPABASE_URL=%s ANON_PREFIX=%s SERVICE_PREFIX=%s",
        supabase_url,
        anon_key[:16] if anon_key else "(not set)",
        service_key[:16] if service_key else "(not set)"
    )
    logger.info("=== Application Ready ===")

    yield

    logger.info("=== Application Shutdown ===")
    try:
        from services.guardian_monitor import get_guardian_registry
        await get_guardian_registry().stop_all()
        logger.info("Guardian feeds stopped")
    except Exception as e:
        logger.warning(f"Error stopping guardian feeds: {e}")
    try:
        from services.couple_store import get_couple_store
        await get_couple_store().close()
    except Exception as e:
        logger.warning(f"Error closing couple store: {e}")
    logger.info("=== Shutdown Complete ===")


app = FastAPI(
    title="Wellness Tracker API",
    description="Mood, medication, sleep, calendar and todo tracking with couple linking.",
    version=VERSION,
    lifespan=lifespan
)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def _rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    return rate_limit_exceeded_handler(request, exc)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.exception(
        "Unhandled exception: %s %s request_id=%s",
        request.method,
        request.url,
        get_request_id(request),
        exc_info=True
    )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


# --- CORS ---
ALLOWED_ORIGINS: List[str] = [
    "http://localhost:3000",
    "http://localhost:5173",
]

cors_origins_env = os.getenv("CORS_ORIGINS")
if cors_origins_env:
    for origin in cors_origins_env.split(","):
        origin = origin.strip()
        if origin and origin not in ALLOWED_ORIGINS:
            ALLOWED_ORIGINS.append(origin)

logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=["Authorization", "Content-Type", "Accept", "X-Request-ID", "X-Session-ID", "X-Couple-ID"],
)

app.add_middleware(ObservabilityMiddleware)

# --- Routers ---
app.include_router(auth.router)
app.include_router(medications.router)
app.include_router(mood.router)
app.include_router(sleep.router)
app.include_router(calendar.router)
app.include_router(todos.router)
app.include_router(couples.router)
app.include_router(activities.router)


# --- Health ---
@app.get("/", tags=["Health Check"])
def read_root():
    return {"message": f"Wellness Tracker API v{VERSION} is running", "status": "healthy"}


@app.get("/health", tags=["Health Check"])
def health_check():
    return {"status": "healthy", "uptime": "ok", "version": VERSION}
