import hmac
import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from helmwatch import __version__
from helmwatch.api.routes import router
from helmwatch.config import settings
from helmwatch.modules.anchor_state import AnchorTransitionError
from helmwatch.modules.anchor_watch import AnchorOperationError
from helmwatch.schemas.error import ErrorResponse
from helmwatch.services import build_services

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build (unless pre-populated) and start the safety services."""
    services = getattr(app.state, "services", None)
    owned = services is None
    if owned:
        services = build_services(settings)
        app.state.services = services
    await services.start()
    logger.info("helmwatch %s started — anchor %s", __version__, services.anchor_watch.anchor_state.state.value)
    try:
        yield
    finally:
        await services.stop()
        if owned:
            del app.state.services


app = FastAPI(
    title="helmwatch",
    description="Collision risk and anchor watch for a vessel assistant.",
    version=__version__,
    lifespan=lifespan,
)

# CORS — origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class APIKeyMiddleware(BaseHTTPMiddleware):
    """Simple API key check. If HELMWATCH_API_KEY is unset, all requests pass."""

    async def dispatch(self, request: Request, call_next):
        if settings.HELMWATCH_API_KEY is not None:
            # Allow health check and OpenAPI docs without auth
            if request.url.path not in ("/health", "/docs", "/openapi.json", "/redoc"):
                api_key = request.headers.get("X-API-Key")
                if not hmac.compare_digest(api_key or "", settings.HELMWATCH_API_KEY):
                    return JSONResponse(
                        status_code=401,
                        content=ErrorResponse(error="Unauthorized", detail="Invalid or missing API key").model_dump(),
                    )
        return await call_next(request)


app.add_middleware(APIKeyMiddleware)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.RATE_LIMIT_DEFAULT],
    enabled=settings.RATE_LIMIT_ENABLED,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_middleware(SlowAPIMiddleware)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=422, content=ErrorResponse(error="Validation error", detail=str(exc)).model_dump())


@app.exception_handler(AnchorTransitionError)
async def anchor_transition_handler(request: Request, exc: AnchorTransitionError):
    return JSONResponse(status_code=409, content=ErrorResponse(error="Conflict", detail=str(exc)).model_dump())


@app.exception_handler(AnchorOperationError)
async def anchor_operation_handler(request: Request, exc: AnchorOperationError):
    return JSONResponse(status_code=422, content=ErrorResponse(error="Unprocessable", detail=str(exc)).model_dump())


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error", detail="An unexpected error occurred.").model_dump())


@app.get("/health")
def health(request: Request) -> dict:
    services = getattr(request.app.state, "services", None)
    if services is None:
        return {"status": "starting", "version": __version__, "components": {}}
    return {
        "status": "ok",
        "version": __version__,
        "components": {
            "anchor_watch": {
                "state": services.anchor_watch.anchor_state.state.value,
                "monitoring": services.anchor_watch.anchor_state.is_monitoring(),
            },
            "collision_monitor": {"running": services.collision_monitor.running},
            "mode": services.mode.mode.value,
            "active_notifications": len(services.sink.active()),
        },
    }
