from typing import Union

import structlog
from fastapi import Request, status
from fastapi.exceptions import HTTPException as FastAPIHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from salesbot.exceptions.app import AppException, ErrorTypes
from salesbot.models.errors import HTTPDetail
from salesbot.models.errors import HTTPException as HTTPExceptionModel

logger = structlog.get_logger(__name__)


def get_status_code_from_error_type(error_type: ErrorTypes) -> int:
    """Map ErrorTypes to HTTP status codes."""
    status_code_map = {
        ErrorTypes.InputValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
        ErrorTypes.ResourceAlreadyExists: status.HTTP_409_CONFLICT,
        ErrorTypes.ResourceNotFound: status.HTTP_404_NOT_FOUND,
        ErrorTypes.InvalidOperation: status.HTTP_400_BAD_REQUEST,
        ErrorTypes.NotEnoughPermission: status.HTTP_403_FORBIDDEN,
        ErrorTypes.Unauthorized: status.HTTP_401_UNAUTHORIZED,
        ErrorTypes.ExternalServiceError: status.HTTP_502_BAD_GATEWAY,
        ErrorTypes.InternalError: status.HTTP_500_INTERNAL_SERVER_ERROR,
        ErrorTypes.UnknownError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    }
    return status_code_map.get(error_type, status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_title_from_status_code(status_code: int) -> str:
    """Get a human-readable title from HTTP status code."""
    title_map = {
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        409: "Conflict",
        422: "Unprocessable Entity",
        500: "Internal Server Error",
        502: "Bad Gateway",
    }
    return title_map.get(status_code, "Error")


def get_error_type_from_status_code(status_code: int) -> ErrorTypes:
    if status_code == 401:
        return ErrorTypes.Unauthorized
    if status_code == 403:
        return ErrorTypes.NotEnoughPermission
    if status_code == 404:
        return ErrorTypes.ResourceNotFound
    if status_code == 409:
        return ErrorTypes.ResourceAlreadyExists
    if status_code == 422:
        return ErrorTypes.InputValidationError
    if status_code == 400:
        return ErrorTypes.InvalidOperation
    if status_code >= 500:
        return ErrorTypes.InternalError
    return ErrorTypes.UnknownError


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handle custom AppException instances."""
    status_code = get_status_code_from_error_type(exc.type)
    if status_code >= 500:
        logger.error(
            "Application error",
            error_type=str(exc.type),
            resource=exc.resource,
            error=exc.message,
        )

    error_response = HTTPExceptionModel(
        status_code=status_code,
        title=get_title_from_status_code(status_code),
        detail=exc.message,
        errors=[
            HTTPDetail(
                type=exc.type,
                message=exc.message,
                resource=exc.resource,
                field=exc.field,
                value=exc.value,
            )
        ],
    )

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def validation_exception_handler(
    request: Request, exc: Union[RequestValidationError, ValidationError]
) -> JSONResponse:
    """Handle Pydantic and FastAPI validation errors."""
    errors = []
    for error in exc.errors():
        field_path = ".".join(str(loc) for loc in error.get("loc", []))
        errors.append(
            HTTPDetail(
                type=error.get("type", ErrorTypes.InputValidationError.value),
                message=error.get("msg", "Validation error"),
                field=field_path if field_path else None,
                value=error.get("input"),
            )
        )

    error_response = HTTPExceptionModel(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        title="Validation Error",
        detail="One or more fields failed validation",
        errors=errors,
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


async def fastapi_http_exception_handler(
    request: Request, exc: FastAPIHTTPException
) -> JSONResponse:
    """Handle FastAPI's built-in HTTPException."""
    error_response = HTTPExceptionModel(
        status_code=exc.status_code,
        title=get_title_from_status_code(exc.status_code),
        detail=str(exc.detail),
        errors=[
            HTTPDetail(
                type=get_error_type_from_status_code(exc.status_code),
                message=str(exc.detail),
                resource=request.url.path,
            )
        ],
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=exc.headers,
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle any unhandled exceptions."""
    logger.error(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        error=str(exc),
        exc_info=exc,
    )

    error_response = HTTPExceptionModel(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        title="Internal Server Error",
        detail="An unexpected error occurred",
        errors=[
            HTTPDetail(
                type=ErrorTypes.InternalError,
                message="An unexpected error occurred. Please try again later.",
                resource=request.url.path,
            )
        ],
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_response.model_dump(mode="json", exclude_none=True),
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Usage:
        app = FastAPI()
        register_exception_handlers(app)
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ValidationError, validation_exception_handler)
    app.add_exception_handler(FastAPIHTTPException, fastapi_http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
