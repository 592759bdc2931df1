"""FastAPI application for the pharmacy KPI backend."""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from pharmakpi import __version__
from pharmakpi.core.config import get_settings
from pharmakpi.core.logging import get_request_id, setup_logging
from pharmakpi.core.metrics import app_info, app_uptime_seconds
from pharmakpi.services.analyses import AnalysisError
from pharmakpi.web.deps import DBSession
from pharmakpi.web.middleware import PrometheusMiddleware
from pharmakpi.web.routers import kpis
from pharmakpi.web.schemas import ErrorResponse

settings = get_settings()
setup_logging(settings.log_level, settings.log_to_stdout, settings.log_file_path)
log = logging.getLogger("pharmakpi.web")

# Application start time for uptime calculation
APP_START_TIME = time.time()

app = FastAPI(
    title="PharmaKPI API",
    version=__version__,
    description="Inventory and sales analytics for pharmacy retail data",
)

app.add_middleware(PrometheusMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app_info.labels(version=__version__).set(1)


def _validation_message(exc: RequestValidationError) -> str:
    """Turn the first validation error into a single user-facing message."""
    errors = exc.errors()
    if not errors:
        return "Requête invalide"
    err = errors[0]
    loc = [str(part) for part in err.get("loc", ()) if part != "body"]
    field = ".".join(loc)
    kind = err.get("type", "")

    if kind == "missing":
        if not field:
            return "Corps de requête manquant"
        return f"Le paramètre {field} est obligatoire"
    if kind.startswith("date") or kind.startswith("datetime"):
        return "Format de date invalide. Utilisez YYYY-MM-DD"
    if kind == "value_error":
        # Messages raised by the request validators
        return str(err.get("ctx", {}).get("error", err.get("msg", "")))
    if kind == "json_invalid":
        return "Corps JSON invalide"
    return f"{field}: {err.get('msg', '')}" if field else str(err.get("msg", ""))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Reject invalid requests with 400 and a single message."""
    message = _validation_message(exc)
    log.info(
        "request_validation_failed",
        extra={"path": str(request.url.path), "error": message},
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": message},
    )


@app.exception_handler(AnalysisError)
async def analysis_exception_handler(request: Request, exc: AnalysisError):
    """Store failures during an analysis (500)."""
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": str(exc)},
    )


# Global exception handler for unhandled errors (500)
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions with proper logging and response."""
    request_id = get_request_id() or getattr(request.state, "request_id", "")

    log.error(
        "unhandled_exception",
        extra={
            "path": str(request.url.path),
            "method": request.method,
            "error": str(exc),
            "error_type": type(exc).__name__,
        },
        exc_info=True,
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "internal_server_error",
            "request_id": request_id,
        },
    )


app.include_router(
    kpis.router,
    prefix="/api/kpis",
    tags=["KPIs"],
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)


@app.get("/health")
def health(db: DBSession):
    """Health check with database connectivity."""
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        log.warning("health_database_error", extra={"error": str(e)})
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "unhealthy", "database": "error"},
        )
    return {"status": "healthy", "database": "ok"}


@app.get("/metrics")
def metrics():
    """Prometheus metrics endpoint."""
    app_uptime_seconds.set(time.time() - APP_START_TIME)
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
