"""Global error handling middleware for consistent error responses."""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors.

    Use this class to raise application-specific errors that should
    be returned to the client with a specific status code and message.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_type: str = "api_error",
    ) -> None:
        """Initialize API error.

        Args:
            message: Human-readable error message, safe to return to clients.
            status_code: HTTP status code to return.
            error_type: Error category/type for client handling.
        """
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        super().__init__(message)


class MalformedRequestError(APIError):
    """Request body could not be decoded."""

    def __init__(self, message: str = "Malformed request body") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="malformed_request",
        )


class MissingIdentityError(APIError):
    """No wallet address could be resolved from the request."""

    def __init__(self, message: str = "Wallet address is required") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="missing_identity",
        )


class NotFoundError(APIError):
    """Resource not found error."""

    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            error_type="not_found",
        )


class InvalidSocialLinksError(APIError):
    """socialLinks field is not a JSON list of {title, url} objects."""

    def __init__(self, message: str = "Invalid social links format") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="invalid_social_links",
        )


class NoFieldsProvidedError(APIError):
    """Update request carried nothing to update."""

    def __init__(self, message: str = "No update data provided") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="no_fields_provided",
        )


class UploadFailedError(APIError):
    """Image store rejected or failed the upload."""

    def __init__(self, message: str = "Failed to upload avatar") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="upload_failed",
        )


class InvalidReferenceError(APIError):
    """Image URL does not follow the image store's delivery URL scheme."""

    def __init__(self, message: str = "Invalid image URL") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_type="invalid_reference",
        )


class DeleteFailedError(APIError):
    """Image store failed to delete an asset."""

    def __init__(self, message: str = "Failed to delete image") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="delete_failed",
        )


class PersistenceError(APIError):
    """Database rejected or failed the write."""

    def __init__(self, message: str = "Failed to update user") -> None:
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error_type="persistence_error",
        )


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    request_id: str | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    """Create a standardized JSON error response.

    Args:
        error_type: Error category for client handling.
        message: Human-readable error description.
        status_code: HTTP status code.
        request_id: Optional request ID for tracing.
        headers: Optional extra response headers.

    Returns:
        JSONResponse: Formatted error response.
    """
    error_response = ErrorResponse.from_exception(
        error_type=error_type,
        message=message,
        request_id=request_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=error_response.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render routing-level HTTP errors (404, 405) in the standard error shape.

    Args:
        request: The incoming request.
        exc: The HTTP exception raised by routing or a handler.

    Returns:
        JSONResponse: Formatted error response.
    """
    logger.warning(
        "HTTP exception: %s - %s %s",
        exc.status_code,
        request.method,
        request.url.path,
    )
    return create_error_response(
        error_type="http_error",
        message=str(exc.detail),
        status_code=exc.status_code,
        request_id=request.headers.get("X-Request-ID"),
        headers=getattr(exc, "headers", None),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Middleware to catch and format all exceptions.

    Ensures consistent error response format across the application.
    Logs full stack traces for debugging while returning safe messages to clients.

    Args:
        request: The incoming request.
        call_next: Next middleware or route handler.

    Returns:
        Response: Either the successful response or formatted error response.
    """
    # Extract request ID if present (can be set by upstream middleware/load balancer)
    request_id = request.headers.get("X-Request-ID")

    try:
        response = await call_next(request)
        return response

    except APIError as e:
        logger.warning(
            "API error: %s - %s",
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(
            error_type=e.error_type,
            message=e.message,
            status_code=e.status_code,
            request_id=request_id,
        )

    except HTTPException as e:
        logger.warning(
            "HTTP exception: %s - %s",
            e.status_code,
            e.detail,
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="http_error",
            message=str(e.detail),
            status_code=e.status_code,
            request_id=request_id,
        )

    except Exception as e:
        # Unexpected exceptions - log full stack trace
        logger.error(
            "Unhandled exception: %s\n%s",
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            error_type="internal_error",
            message="An unexpected error occurred",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
