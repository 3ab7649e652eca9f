"""
Error taxonomy for catalog, media and translation operations.

Every error raised on purpose by the service layer derives from
`PortfolioError` and carries the HTTP status it maps to. The API layer
renders them with a single exception handler (see `register_error_handlers`).
"""

from __future__ import annotations

from typing import Sequence

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

log = structlog.get_logger()


class PortfolioError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_body(self) -> dict:
        return {"code": self.code, "message": self.message, "status": self.status_code}


class ValidationFailed(PortfolioError):
    """A batch of human-readable violations; nothing was persisted."""

    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(self, messages: Sequence[object]):
        self.messages = [str(m) for m in messages]
        super().__init__(" ".join(self.messages) or "Invalid request.")

    def to_body(self) -> dict:
        body = super().to_body()
        body["details"] = self.messages
        return body


class UnknownCategory(PortfolioError):
    status_code = 400
    code = "UNKNOWN_CATEGORY"


class PathEscape(PortfolioError):
    status_code = 403
    code = "PATH_ESCAPE"


class RecordNotFound(PortfolioError):
    status_code = 404
    code = "NOT_FOUND"


class MissingAsset(RecordNotFound):
    code = "MISSING_ASSET"


class IdentifierConflict(PortfolioError):
    status_code = 409
    code = "IDENTIFIER_CONFLICT"


class LocaleInconsistency(PortfolioError):
    status_code = 409
    code = "LOCALE_INCONSISTENCY"


class ImageProcessingFailed(PortfolioError):
    status_code = 400
    code = "IMAGE_PROCESSING_FAILED"


class CatalogReadError(PortfolioError):
    code = "CATALOG_READ_ERROR"


class CatalogWriteError(PortfolioError):
    code = "CATALOG_WRITE_ERROR"


class TranslationError(PortfolioError):
    status_code = 502
    code = "TRANSLATION_FAILED"


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------


async def portfolio_error_handler(request: Request, exc: PortfolioError) -> JSONResponse:
    if exc.status_code >= 500:
        log.error("request.failed", code=exc.code, error=exc.message, exc_info=exc)
    else:
        log.warning("request.rejected", code=exc.code, status=exc.status_code, error=exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_body()})


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    messages = [
        f'{".".join(str(part) for part in err.get("loc", ()))}: {err.get("msg", "invalid value")}'
        for err in exc.errors()
    ]
    return await portfolio_error_handler(request, ValidationFailed(messages))


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("request.crashed", error=str(exc), exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "Internal server error.",
                "status": 500,
            }
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(PortfolioError, portfolio_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
