"""
Shared dependencies for the staff service API.
Logging, rate limiting and access to the persistence handle.
"""
import json as _json
import logging
import logging.handlers
import traceback
from datetime import datetime as _dt, timezone as _tz

from fastapi import HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from staffdb import DocumentStore, ScheduleLedger, StaffDirectory
from . import config

# ── Structured JSON Logging setup ───────────────────────────────
class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON objects."""
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": _dt.fromtimestamp(record.created, tz=_tz.utc).strftime('%Y-%m-%dT%H:%M:%S.') + f"{int(record.msecs):03d}Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return _json.dumps(entry, ensure_ascii=False)

_logger = logging.getLogger('staffsvc')
_logger.setLevel(getattr(logging, config.LOG_LEVEL, logging.INFO))
_stderr_handler = logging.StreamHandler()
_stderr_handler.setFormatter(_JsonFormatter())
_logger.addHandler(_stderr_handler)
if config.LOG_FILE:
    _handler = logging.handlers.RotatingFileHandler(
        config.LOG_FILE, maxBytes=10 * 1024 * 1024, backupCount=3
    )
    _handler.setFormatter(_JsonFormatter())
    _logger.addHandler(_handler)

# ── Rate Limiter ─────────────────────────────────────────────────
limiter = Limiter(key_func=get_remote_address, enabled=config.RATE_LIMIT_ENABLED)


# ── Persistence handle ───────────────────────────────────────────
# Created in the app lifespan and kept on app.state, never as a module global.

def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_directory(request: Request) -> StaffDirectory:
    return request.app.state.directory


def get_ledger(request: Request) -> ScheduleLedger:
    return request.app.state.ledger


def _sanitize_500(e: Exception, context: str = '') -> HTTPException:
    """Log full exception, return sanitized 500."""
    _logger.error(
        "%s: type=%s msg=%s trace=%s",
        context or '500 error', type(e).__name__, str(e),
        traceback.format_exc(),
    )
    return HTTPException(status_code=500, detail="Internal server error")
