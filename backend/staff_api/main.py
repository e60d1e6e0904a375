"""FastAPI application for the staff service."""
import json as _json
import time as _time
import uuid as _uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from staffdb import DocumentStore, ScheduleLedger, StaffDirectory, register_schemas
from staffdb.store import StoreConnectionError
from . import config
from .dependencies import _logger, limiter
from .routers import schedule, staff

_OPENAPI_TAGS = [
    {"name": "Health", "description": "Liveness and readiness probes"},
    {"name": "Staff", "description": "Staff records per business/franchise"},
    {"name": "Schedule", "description": "Time intervals attached to staff"},
]


@asynccontextmanager
async def lifespan(app: FastAPI):
    store = DocumentStore(config.DATA_DIR)
    try:
        store.connect()
    except StoreConnectionError as exc:
        # Serving with a broken store is pointless: terminate the process
        _logger.error("Document store connection error: %s", exc, exc_info=True)
        raise SystemExit(1)
    register_schemas(store)
    _logger.info("Connected to document store at %s", store.data_dir)
    app.state.store = store
    app.state.directory = StaffDirectory(store)
    app.state.ledger = ScheduleLedger(store, app.state.directory)
    yield
    store.close()
    _logger.info("%s shutting down, document store closed", config.SERVICE_NAME)


app = FastAPI(
    lifespan=lifespan,
    title="Staff Service API",
    description=(
        "Staff records for multi-tenant businesses and franchises, "
        "and the schedules attached to them.\n\n"
        "Errors are returned as `{\"message\": ...}`."
    ),
    version="1.0.0",
    openapi_tags=_OPENAPI_TAGS,
)

app.state.limiter = limiter


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """429 in the common {"message": ...} shape, with the limit headers."""
    response = JSONResponse(
        status_code=429,
        content={"message": f"Rate limit exceeded: {exc.detail}"},
    )
    return request.app.state.limiter._inject_headers(response, request.state.view_rate_limit)


app.add_middleware(
    CORSMiddleware,
    allow_origins=config.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render HTTP errors as {"message": ...}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Flatten Pydantic validation errors into one readable message."""
    _TYPE_MSGS = {
        "missing": "is required",
        "int_parsing": "must be an integer",
        "bool_parsing": "must be true or false",
        "datetime_parsing": "must be an ISO-8601 date-time",
        "datetime_from_date_parsing": "must be an ISO-8601 date-time",
        "string_too_short": "must not be empty",
        "string_type": "must be a string",
        "literal_error": "is not an allowed value",
        "extra_forbidden": "cannot be updated",
        "greater_than_equal": "is too small",
    }
    errors = []
    for e in exc.errors():
        field = ".".join(str(loc) for loc in e.get("loc", []) if loc not in ("body", "query", "path"))
        etype = e.get("type", "")
        msg = _TYPE_MSGS.get(etype, e.get("msg", "invalid value"))
        if field:
            errors.append(f"{field}: {msg}")
        else:
            errors.append(msg)
    message = "; ".join(errors) if errors else "Invalid input"
    return JSONResponse(status_code=422, content={"message": message})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions, log with details, return sanitized 500."""
    _logger.error(
        "Unhandled exception: %s %s | %s",
        request.method, request.url.path, type(exc).__name__,
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"message": "Internal server error"})


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Log every request as structured JSON with timing info and request-ID."""
    # Generate a short unique request ID for correlating log entries
    req_id = _uuid.uuid4().hex[:8]
    start = _time.time()
    response = await call_next(request)
    duration_ms = round((_time.time() - start) * 1000)
    entry = {
        "req_id": req_id,
        "method": request.method,
        "path": request.url.path,
        "status": response.status_code,
        "duration_ms": duration_ms,
    }
    _logger.info(_json.dumps(entry, ensure_ascii=False))
    response.headers["X-Request-ID"] = req_id
    return response


# ── Include routers ─────────────────────────────────────────────
app.include_router(staff.router)
app.include_router(schedule.router)


# ── Routes ──────────────────────────────────────────────────────

@app.get("/health", tags=["Health"], summary="Liveness probe")
def health():
    return {"status": "ok", "service": config.SERVICE_NAME}


@app.get(
    "/ready",
    tags=["Health"],
    summary="Readiness probe",
    description="200 while the document store is connected, 503 otherwise.",
)
def ready(request: Request):
    store = getattr(request.app.state, "store", None)
    is_ready = bool(store is not None and store.is_connected)
    return JSONResponse(status_code=200 if is_ready else 503, content={"ready": is_ready})
