import logging
import time
import uuid
from typing import Optional

import sentry_sdk
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sentry_sdk.integrations.starlette import StarletteIntegration
from starlette.exceptions import HTTPException as StarletteHTTPException

from gallerydesk.api import galleries, internal, plans
from gallerydesk.core.logging_utils import configure_logging
from gallerydesk.core.plan_features import PERMISSION_MATRIX
from gallerydesk.core.settings import settings

load_dotenv()


app = FastAPI(title="GalleryDesk")

# Configure logging (console + rotating file; JSON by default)
configure_logging(settings)
logger = logging.getLogger("app")

# Initialize Sentry if DSN provided
if settings.SENTRY_DSN:
    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        integrations=[StarletteIntegration()],
        traces_sample_rate=float(getattr(settings, "SENTRY_TRACES_SAMPLE_RATE", 0.0) or 0.0),
        send_default_pii=False,
    )

app.include_router(galleries.router)
app.include_router(plans.router)
app.include_router(internal.router)


@app.get("/health")
def health():
    return {"status": "ok", "permission_matrix": PERMISSION_MATRIX.version}


# Request logging middleware with request id
@app.middleware("http")
async def logging_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    start = time.perf_counter()
    duration_ms: Optional[int] = None
    # Stash request_id for downstream handlers
    request.state.request_id = request_id

    extra_ctx = {
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "client": request.client.host if request.client else None,
        "has_session": bool(
            request.cookies.get(settings.SESSION_COOKIE) or request.headers.get("X-Session-ID")
        ),
        "user_agent": request.headers.get("user-agent"),
    }
    logger.info("request.start", extra=extra_ctx)
    try:
        response = await call_next(request)
    except Exception:
        duration_ms = int((time.perf_counter() - start) * 1000)
        logger.exception("request.error", extra={**extra_ctx, "duration_ms": duration_ms})
        # Re-raise to be handled by the 500 handler
        raise

    duration_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request.end",
        extra={**extra_ctx, "status_code": response.status_code, "duration_ms": duration_ms},
    )
    return response


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Mirror FastAPI's default JSON shape and stamp the request id."""
    status = getattr(exc, "status_code", 500) or 500
    request_id = getattr(request.state, "request_id", None)
    if status >= 500:
        logger.error(
            "http.error",
            extra={"request_id": request_id, "path": request.url.path, "status_code": status},
        )
    resp = JSONResponse({"detail": exc.detail}, status_code=status, headers=exc.headers)
    if request_id:
        resp.headers["X-Request-ID"] = str(request_id)
    return resp


@app.exception_handler(Exception)
async def server_error_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", None)
    logger.exception(
        "request.unhandled",
        extra={"request_id": request_id, "path": request.url.path, "method": request.method},
        exc_info=exc,
    )
    resp = JSONResponse(
        {"success": False, "error": "Internal Server Error", "request_id": request_id},
        status_code=500,
    )
    if request_id:
        resp.headers["X-Request-ID"] = str(request_id)
    return resp
