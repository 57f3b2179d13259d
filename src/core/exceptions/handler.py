"""
Error envelope for the transfer API.

Every failure leaves the service as
``{"success": false, "error": {code, message, timestamp, details?, request_id?}}``.
Domain code raises ServiceError subclasses; the handlers below are
registered on the FastAPI app and do the conversion and logging.
"""

import traceback
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class ServiceErrorCode:
    """Error codes exposed in the ``error.code`` field"""

    # Request
    INVALID_INPUT = "INVALID_INPUT"
    MISSING_FIELD = "MISSING_FIELD"
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # Transfer orchestration
    ALREADY_IN_PROGRESS = "ALREADY_IN_PROGRESS"
    INVALID_STATE = "INVALID_STATE"
    FUNDING_TIMEOUT = "FUNDING_TIMEOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"

    # Intent / balance backends
    TRANSPORT_ERROR = "TRANSPORT_ERROR"

    INTERNAL_ERROR = "INTERNAL_ERROR"


_HTTP_STATUS_CODES = {
    400: ServiceErrorCode.INVALID_INPUT,
    404: ServiceErrorCode.NOT_FOUND,
    405: ServiceErrorCode.METHOD_NOT_ALLOWED,
    409: ServiceErrorCode.INVALID_STATE,
    422: ServiceErrorCode.INVALID_INPUT,
    429: ServiceErrorCode.RATE_LIMIT_EXCEEDED,
}


class ServiceError(Exception):
    """
    Standardized service error for internal use.
    Gets converted to proper HTTP response by error handler.
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.context = context or {}
        super().__init__(message)


def build_error_response(
    code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request_id: Optional[str] = None
) -> Dict[str, Any]:
    error: Dict[str, Any] = {
        "code": code,
        "message": message,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }
    if details:
        error["details"] = details
    if request_id:
        error["request_id"] = request_id
    return {"success": False, "error": error}


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "request_id": request.headers.get("X-Request-ID", "unknown"),
        "path": request.url.path,
        "method": request.method
    }


class GlobalErrorHandler:
    """Exception handlers registered on the FastAPI app"""

    @staticmethod
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        context = _request_context(request)

        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"Service error: {exc.code}",
            extra={
                **context,
                "error_code": exc.code,
                "error_message": exc.message,
                "status_code": exc.status_code,
                "details": exc.details,
                "context": exc.context
            }
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=jsonable_encoder(
                build_error_response(exc.code, exc.message, exc.details, context["request_id"])
            )
        )

    @staticmethod
    async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        context = _request_context(request)
        code = _HTTP_STATUS_CODES.get(exc.status_code, ServiceErrorCode.INTERNAL_ERROR)

        logger.warning(
            f"HTTP exception: {exc.status_code}",
            extra={**context, "status_code": exc.status_code, "detail": exc.detail}
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=build_error_response(code, str(exc.detail), request_id=context["request_id"]),
            headers=getattr(exc, "headers", None)
        )

    @staticmethod
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        context = _request_context(request)

        validation_errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "input": error.get("input")
            }
            for error in exc.errors()
        ]

        logger.warning(
            f"Validation error: {len(validation_errors)} errors",
            extra={**context, "validation_errors": validation_errors}
        )

        response = build_error_response(
            ServiceErrorCode.INVALID_INPUT,
            "Validation failed",
            {"validation_errors": validation_errors},
            context["request_id"]
        )
        return JSONResponse(status_code=422, content=jsonable_encoder(response))

    @staticmethod
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        context = _request_context(request)

        logger.error(
            f"Unexpected error: {type(exc).__name__}",
            extra={**context, "error_type": type(exc).__name__, "error_message": str(exc)},
            exc_info=True
        )

        # Internal details only leave the service in DEBUG
        if settings.DEBUG:
            message = f"Internal error: {str(exc)}"
            details = {"traceback": traceback.format_exc()}
        else:
            message = "An unexpected error occurred. Please try again."
            details = None

        return JSONResponse(
            status_code=500,
            content=build_error_response(ServiceErrorCode.INTERNAL_ERROR, message, details, context["request_id"])
        )
