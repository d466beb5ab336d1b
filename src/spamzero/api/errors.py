import logging
from typing import Any, ClassVar

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger("app")


class SpamZeroError(Exception):
    """
    Base class for every failure the SpamZero API reports to its callers.

    Each subclass pins an HTTP status code and a machine-readable error code.
    The human-readable `message` and optional `details` (a driver message, the
    upstream response body, ...) travel with the exception so the exception
    handler can render a consistent JSON payload.
    """

    status_code: ClassVar[int] = 500
    code: ClassVar[str] = "internal_error"

    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.details: Any = details

    @property
    def http_status(self) -> int:
        return self.status_code

    def to_payload(self) -> dict[str, Any]:
        """Render the error as the JSON body returned to the client."""
        payload: dict[str, Any] = {"error": self.message, "code": self.code}

        if self.details is not None:
            payload["details"] = self.details

        return payload


class InvalidInput(SpamZeroError):
    """Malformed request body or history identifier."""

    status_code = 400
    code = "invalid_input"


class NotFound(SpamZeroError):
    """The history record targeted by a delete does not exist."""

    status_code = 404
    code = "not_found"


class ConfigurationError(SpamZeroError):
    """Required environment configuration is missing."""

    status_code = 500
    code = "configuration_error"


class StoreUnavailable(SpamZeroError):
    """The document store failed or could not be reached."""

    status_code = 500
    code = "store_unavailable"


class PayloadTooLarge(SpamZeroError):
    """The request body exceeds the configured `MAX_PAYLOAD_BYTES`."""

    status_code = 413
    code = "payload_too_large"


class PredictionFailed(SpamZeroError):
    """The remote classifier could not be reached or its reply could not be read."""

    status_code = 500
    code = "prediction_failed"


class UpstreamError(SpamZeroError):
    """
    The remote classifier answered with a non-success status.

    The remote status code is propagated as the HTTP status of the API
    response, and the remote body is attached as `details`.
    """

    code = "upstream_error"

    def __init__(self, message: str, status: int, details: Any = None) -> None:
        super().__init__(message, details)
        self.status: int = status

    @property
    def http_status(self) -> int:
        return self.status

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["status"] = self.status
        return payload


def error_response(exc: SpamZeroError) -> JSONResponse:
    return JSONResponse(exc.to_payload(), status_code=exc.http_status)


async def spamzero_error_handler(request: Request, exc: SpamZeroError) -> JSONResponse:
    """Convert a `SpamZeroError` raised anywhere below a route into JSON."""
    return error_response(exc)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the failure and report it as a 500."""
    logger.exception(
        "unhandled error", extra={"path": request.url.path, "method": request.method}
    )

    return JSONResponse(
        {"error": "Internal server error", "code": "internal_error", "details": str(exc)},
        status_code=500,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(SpamZeroError, spamzero_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)
