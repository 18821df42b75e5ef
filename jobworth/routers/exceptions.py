from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jobworth.core.errors import DomainError
from jobworth.core.logging import get_correlation_id, get_logger

logger = get_logger("jobworth.routers.exceptions", component="http")


def register_exception_handlers(app: FastAPI) -> None:
    """Register shared HTTP translators for domain-layer exceptions."""

    @app.exception_handler(DomainError)
    async def _handle_domain_error(request: Request, exc: DomainError) -> JSONResponse:
        status_code = getattr(exc, "status_code", 400)
        if status_code >= 500:
            # Server-side detail stays in the logs
            logger.error(
                "request_failed",
                extra={
                    "structured_data": {
                        "path": request.url.path,
                        "error_code": exc.error_code,
                        "cause": repr(exc.__cause__) if exc.__cause__ else None,
                    }
                },
            )
            detail_payload: dict[str, Any] = {"message": exc.message}
        elif isinstance(exc.detail, dict):
            detail_payload = {**exc.detail}
            detail_payload.setdefault("message", exc.message)
        elif exc.detail is not None:
            detail_payload = {"message": exc.message, "extra": exc.detail}
        else:
            detail_payload = {"message": exc.message}
        payload: dict[str, Any] = {
            "success": False,
            "error": exc.error_code,
            "detail": detail_payload,
        }
        correlation_id = get_correlation_id()
        if correlation_id:
            payload["correlation_id"] = correlation_id
        return JSONResponse(status_code=status_code, content=payload)
