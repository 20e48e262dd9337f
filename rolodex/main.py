"""Application entrypoint for the Rolodex contact core."""

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from rolodex.api.v1 import router as api_v1_router
from rolodex.core.config import Settings, get_settings
from rolodex.core.db import engine
from rolodex.core.errors import CRMError, InvalidStateError, NotFoundError, ValidationError
from rolodex.core.logging import configure_logging
from rolodex.models import Base

logger = logging.getLogger(__name__)

ERROR_CODE_MAP: dict[int, str] = {
    404: "RESOURCE_NOT_FOUND",
    409: "INVALID_STATE",
    422: "VALIDATION_ERROR",
}

CRM_ERROR_STATUS: dict[type[CRMError], int] = {
    NotFoundError: 404,
    InvalidStateError: 409,
    ValidationError: 422,
}


def create_app() -> FastAPI:
    """Create and configure the FastAPI application instance."""
    settings = get_settings()
    configure_logging(settings)

    application = FastAPI(title="Rolodex", version=settings.version)

    _configure_cors(application, settings)
    _configure_exception_handlers(application)

    application.include_router(api_v1_router, prefix="/api/v1")

    @application.on_event("startup")
    async def _on_startup() -> None:  # pragma: no cover - exercised via tests
        async with engine.begin() as connection:
            await connection.run_sync(Base.metadata.create_all)

    return application


def _configure_cors(application: FastAPI, settings: Settings) -> None:
    if not settings.cors_origins:
        return

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


def _configure_exception_handlers(application: FastAPI) -> None:
    application.add_exception_handler(HTTPException, _http_exception_handler)
    application.add_exception_handler(RequestValidationError, _validation_exception_handler)
    application.add_exception_handler(CRMError, _crm_exception_handler)
    application.add_exception_handler(IntegrityError, _integrity_exception_handler)
    application.add_exception_handler(Exception, _unhandled_exception_handler)


async def _http_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HTTPException)
    if isinstance(exc.detail, dict):
        message = str(exc.detail.get("message", "")) or str(exc.detail)
        code = exc.detail.get(
            "code", ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
        )
    else:
        message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
        code = ERROR_CODE_MAP.get(exc.status_code, f"HTTP_{exc.status_code}")
    return _error_response(code, message, exc.status_code)


async def _validation_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, RequestValidationError)
    logger.info("Validation error", extra={"errors": exc.errors()})
    return _error_response("VALIDATION_ERROR", "Validation error", status_code=422)


async def _crm_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, CRMError)
    status_code = next(
        (code for error_type, code in CRM_ERROR_STATUS.items() if isinstance(exc, error_type)),
        400,
    )
    logger.info("Request rejected", extra={"error_code": exc.code, "status_code": status_code})
    return _error_response(exc.code, exc.message, status_code)


async def _integrity_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.warning("Constraint violation", extra={"error_type": type(exc).__name__})
    return _error_response("VALIDATION_ERROR", "Conflicting record already exists", status_code=422)


async def _unhandled_exception_handler(_: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled application error")
    return _error_response("INTERNAL_SERVER_ERROR", "Internal server error", status_code=500)


def _error_response(code: str, message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": {"code": code, "message": message}})


app = create_app()
