"""FastAPI application exposing the assessment report workflow."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Literal, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel, Field
from sqlalchemy import text
from sqlalchemy.orm import Session
from structlog.contextvars import bind_contextvars, unbind_contextvars

from practicehub.auth import Actor, require_role
from practicehub.config import APP_NAME, get_settings
from practicehub.db.session import get_engine, get_session, initialise_schema
from practicehub.errors import ReportError
from practicehub.metrics import REQUEST_COUNTER, REQUEST_LATENCY
from practicehub.report_service import ReportService, report_payload

settings = get_settings()

logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO), format="%(message)s")
structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.JSONRenderer(),
    ],
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

START_TIME = time.time()

# ---------------------------------------------------------------------------
# Response envelope
# ---------------------------------------------------------------------------


class SuccessResponse(BaseModel):
    """Standard successful response envelope."""

    success: Literal[True] = True
    data: Any | None = None


class ErrorDetail(BaseModel):
    """Details describing an error response payload."""

    code: int | str | None = None
    message: str
    details: Any | None = None

    model_config = {"extra": "allow"}


class ErrorResponse(BaseModel):
    """Standard error response envelope."""

    success: Literal[False] = False
    error: ErrorDetail


_ERROR_MESSAGE_KEYS = ("message", "detail", "error", "msg")
_ERROR_RESERVED_KEYS = {"code", "details", *_ERROR_MESSAGE_KEYS}


def _build_error_response(payload: Any, status_code: int | None = None) -> ErrorResponse:
    """Normalize ``payload`` into the standard :class:`ErrorResponse` structure."""

    code: int | str | None = status_code
    message = "An error occurred"
    details: Any | None = None
    extras: Dict[str, Any] = {}

    if isinstance(payload, dict):
        if payload.get("code") not in (None, ""):
            code = payload["code"]
        if "details" in payload:
            details = payload["details"]
        for key in _ERROR_MESSAGE_KEYS:
            if payload.get(key) not in (None, ""):
                message = str(payload[key])
                break
        extras = {k: v for k, v in payload.items() if k not in _ERROR_RESERVED_KEYS}
    elif payload not in (None, ""):
        message = str(payload)

    error_payload: Dict[str, Any] = {"message": message, **extras}
    if code is not None:
        error_payload["code"] = code
    if details is not None:
        error_payload["details"] = details
    return ErrorResponse(error=ErrorDetail(**error_payload))


def _success(data: Any) -> Dict[str, Any]:
    return SuccessResponse(data=data).model_dump()


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("lifespan_startup")
    initialise_schema()
    try:
        yield
    finally:
        logger.info("lifespan_shutdown", uptime=round(time.time() - START_TIME, 2))


app = FastAPI(title=f"{APP_NAME} API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.allow_all_origins else settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def inject_trace_id(request: Request, call_next):
    """Attach or propagate a trace identifier for each request."""

    trace_id = request.headers.get("x-trace-id") or uuid.uuid4().hex
    bind_contextvars(trace_id=trace_id, path=request.url.path, method=request.method)
    start = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["X-Trace-Id"] = trace_id
        return response
    except Exception:
        logger.exception("request_failed")
        raise
    finally:
        route = request.scope.get("route")
        endpoint = getattr(route, "path", None) or "unmatched"
        REQUEST_COUNTER.labels(request.method, endpoint, str(status_code)).inc()
        REQUEST_LATENCY.labels(request.method, endpoint).observe(time.perf_counter() - start)
        unbind_contextvars("trace_id", "path", "method")


@app.exception_handler(ReportError)
async def report_error_handler(request: Request, exc: ReportError) -> JSONResponse:
    """Convert workflow errors into the standard error envelope."""

    error_payload = _build_error_response(exc.to_payload(), status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=error_payload.model_dump(exclude_none=True))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Convert ``HTTPException`` instances into the standard error envelope."""

    error_payload = _build_error_response(exc.detail, status_code=exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload.model_dump(exclude_none=True),
        headers=dict(exc.headers or {}),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error_payload = _build_error_response(
        {"code": "ValidationError", "message": "Request validation failed", "details": jsonable_encoder(exc.errors())},
    )
    return JSONResponse(status_code=422, content=error_payload.model_dump(exclude_none=True))


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class GenerateReportRequest(BaseModel):
    reset_draft: bool = Field(True, alias="resetDraft")

    model_config = {"populate_by_name": True}


class DraftUpdateRequest(BaseModel):
    draft_content: str = Field(..., alias="draftContent")

    model_config = {"populate_by_name": True}


def get_report_service(session: Session = Depends(get_session)) -> ReportService:
    return ReportService(session)


# ---------------------------------------------------------------------------
# System endpoints
# ---------------------------------------------------------------------------


@app.get("/health", tags=["system"])
async def health():
    """Lightweight health check with a best-effort database probe."""

    try:
        with get_engine().connect() as connection:
            connection.execute(text("SELECT 1"))
        db_ok = True
    except Exception:  # pragma: no cover - reported, not raised
        logger.warning("health_database_unavailable", exc_info=True)
        db_ok = False
    return {"status": "ok", "uptime": round(time.time() - START_TIME, 2), "db": db_ok}


@app.get("/metrics", include_in_schema=False)
async def metrics() -> Response:
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


# ---------------------------------------------------------------------------
# Assessment endpoints
# ---------------------------------------------------------------------------


@app.get("/api/assessments/assignments/{assignment_id}")
def get_assignment(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(service.assignment_view(assignment_id))


@app.get("/api/assessments/assignments/{assignment_id}/responses")
def get_responses(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(service.responses_view(assignment_id))


@app.get("/api/assessments/assignments/{assignment_id}/summary")
def get_summary(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(service.summary_view(assignment_id))


@app.get("/api/assessments/templates/{template_id}/sections")
def get_template_sections(
    template_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(service.sections_view(template_id))


@app.get("/api/assessments/assignments/{assignment_id}/report")
def get_report(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(service.report_view(assignment_id))


@app.post("/api/assessments/assignments/{assignment_id}/generate-report")
def generate_report(
    assignment_id: int,
    payload: Optional[GenerateReportRequest] = None,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    reset_draft = True if payload is None else payload.reset_draft
    report = service.generate(assignment_id, reset_draft=reset_draft)
    logger.info("report_generate_requested", assignment_id=assignment_id, actor=actor.username)
    return _success(report_payload(report))


@app.put("/api/assessments/assignments/{assignment_id}/report")
def save_report_draft(
    assignment_id: int,
    payload: DraftUpdateRequest,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    return _success(report_payload(service.save_draft(assignment_id, payload.draft_content)))


@app.post("/api/assessments/assignments/{assignment_id}/report/finalize")
def finalize_report(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    report = service.finalize(assignment_id, actor.clinician_id)
    logger.info("report_finalize_requested", assignment_id=assignment_id, actor=actor.username)
    return _success(report_payload(report))


@app.post("/api/assessments/assignments/{assignment_id}/report/unfinalize")
def unfinalize_report(
    assignment_id: int,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
):
    report = service.reopen(assignment_id)
    logger.info("report_reopen_requested", assignment_id=assignment_id, actor=actor.username)
    return _success(report_payload(report))


@app.get("/api/assessments/assignments/{assignment_id}/download/{fmt}")
def download_report(
    assignment_id: int,
    fmt: str,
    actor: Actor = Depends(require_role("clinician")),
    service: ReportService = Depends(get_report_service),
) -> Response:
    result = service.export(assignment_id, fmt.lower())
    disposition = "inline" if fmt.lower() == "html" else "attachment"
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={"Content-Disposition": f'{disposition}; filename="{result.filename}"'},
    )


__all__: List[str] = ["app"]
