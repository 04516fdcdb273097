"""
trustledger.security — HTTP plumbing for the ledger API.

Request context (request id + acting account) for JSON logs, caller and
admin-key dependencies, per-account rate limiting, CORS and the 500 handler.
"""

import hmac
import logging
import os
import time
import uuid
from contextvars import ContextVar
from typing import Optional

from fastapi import HTTPException, Request, Security
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import APIKeyHeader
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

CALLER_HEADER = "X-Account-ID"
ADMIN_HEADER = "X-Admin-Key"
REQUEST_ID_HEADER = "X-Request-ID"
MAX_CALLER_LENGTH = 200

request_id_var: ContextVar[str] = ContextVar("request_id", default="")
account_var: ContextVar[str] = ContextVar("account", default="")

logger = logging.getLogger("trustledger.api")


# ─── Logging ───────────────────────────────────────────────────────

class RequestContextFilter(logging.Filter):
    """Stamp every record with the current request id and acting account."""

    def filter(self, record):
        record.request_id = request_id_var.get()
        record.account = account_var.get()
        return True


def setup_structured_logging(level: str = "INFO") -> logging.Logger:
    """JSON logs for the whole ``trustledger`` namespace. Safe to call twice."""
    from pythonjsonlogger.json import JsonFormatter

    root = logging.getLogger("trustledger")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if root.handlers:
        return root

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s %(account)s",
        rename_fields={"asctime": "timestamp", "levelname": "level"},
    ))
    handler.addFilter(RequestContextFilter())
    root.addHandler(handler)
    return root


# ─── Rate limiting ─────────────────────────────────────────────────

def _rate_key(request: Request) -> str:
    # Budget per acting account; anonymous reads fall back to the client address
    caller = request.headers.get(CALLER_HEADER, "").strip()
    return f"account:{caller}" if caller else get_remote_address(request)


limiter = Limiter(
    key_func=_rate_key,
    enabled=os.environ.get("RATELIMIT_ENABLED", "True").lower() not in ("0", "false", "no"),
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    logger.warning("Rate limit exceeded", extra={"path": request.url.path, "limit": str(exc.detail)})
    return JSONResponse(
        status_code=429,
        content={"detail": f"Rate limit exceeded: {exc.detail}", "code": "rate-limited"},
        headers={"Retry-After": "60"},
    )


# ─── Caller and admin dependencies ─────────────────────────────────

_caller_header = APIKeyHeader(name=CALLER_HEADER, auto_error=False)
_admin_header = APIKeyHeader(name=ADMIN_HEADER, auto_error=False)


async def require_caller(caller: Optional[str] = Security(_caller_header)) -> str:
    """Account id the request acts as."""
    caller = (caller or "").strip()
    if not caller:
        raise HTTPException(status_code=401, detail=f"Missing {CALLER_HEADER} header")
    if "\x00" in caller or len(caller) > MAX_CALLER_LENGTH:
        raise HTTPException(status_code=400, detail=f"Invalid {CALLER_HEADER} header")
    account_var.set(caller)
    return caller


async def require_admin_key(request: Request, key: Optional[str] = Security(_admin_header)) -> bool:
    """Guard for clock administration. Disabled unless TRUSTLEDGER_ADMIN_KEY is set."""
    expected = os.environ.get("TRUSTLEDGER_ADMIN_KEY", "")
    if not expected:
        raise HTTPException(status_code=503, detail="Admin access not configured")
    if not key or not hmac.compare_digest(key.encode(), expected.encode()):
        reason = "missing admin key" if not key else "invalid admin key"
        logger.warning("Admin auth failure: %s", reason, extra={
            "path": request.url.path,
            "client": request.client.host if request.client else "",
        })
        raise HTTPException(status_code=401 if not key else 403, detail=reason.capitalize())
    return True


# ─── Middleware ────────────────────────────────────────────────────

class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind request id and caller to the log context and time each request."""

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        request_id_var.set(rid)
        account_var.set(request.headers.get(CALLER_HEADER, "").strip()[:MAX_CALLER_LENGTH])

        started = time.perf_counter()
        response = await call_next(request)
        logger.info("%s %s -> %d", request.method, request.url.path, response.status_code, extra={
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 1),
        })
        response.headers[REQUEST_ID_HEADER] = rid
        response.headers["X-Content-Type-Options"] = "nosniff"
        return response


async def internal_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled %s on %s", type(exc).__name__, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def apply_security(app, allowed_origins: Optional[list[str]] = None):
    """CORS, rate limiting, request context and the 500 handler."""
    if not allowed_origins:
        raw = os.environ.get("ALLOWED_ORIGINS", "")
        allowed_origins = [o.strip() for o in raw.split(",") if o.strip()] or ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_methods=["GET", "POST"],
        allow_headers=[CALLER_HEADER, ADMIN_HEADER, REQUEST_ID_HEADER, "Content-Type"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_exception_handler(Exception, internal_error_handler)
    app.add_middleware(RequestContextMiddleware)
