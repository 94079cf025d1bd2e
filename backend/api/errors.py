"""
Error Mapping
Turns core errors into HTTP responses.

Body:
    {"success": false, "error": {"kind": ..., "message": ...}, "timestamp": ...}
"""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Header, Request
from fastapi.responses import JSONResponse

from core.errors import ErrorKind, MarketCoreError


logger = logging.getLogger(__name__)

STATUS_BY_KIND = {
    ErrorKind.ASSET_NOT_FOUND: 404,
    ErrorKind.STORE_UNAVAILABLE: 503,
    ErrorKind.INVALID_STATE_TRANSITION: 500,
}


def error_body(kind: str, message: str) -> dict:
    return {
        "success": False,
        "error": {"kind": kind, "message": message},
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def core_error_handler(request: Request, exc: MarketCoreError) -> JSONResponse:
    status = STATUS_BY_KIND.get(exc.kind, 400)
    if status >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    else:
        logger.info("%s %s rejected: %s (%s)", request.method, request.url.path, exc.message, exc.kind.value)
    return JSONResponse(status_code=status, content=error_body(exc.kind.value, exc.message))


async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content=error_body("InvalidRequest", str(exc)))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(MarketCoreError, core_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)


async def actor_id(x_actor_id: str = Header(default="anonymous")) -> str:
    """Caller identity recorded in the audit trail (X-Actor-Id header)"""
    return x_actor_id.strip() or "anonymous"


def ok(data) -> dict:
    """Success envelope"""
    return {"success": True, "data": data}
