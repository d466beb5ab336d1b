import logging
import time
from typing import Final
import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from spamzero.api import config, metrics
from spamzero.api.errors import PayloadTooLarge, error_response

logger = logging.getLogger("app")

REQUEST_ID_HEADER: Final[str] = "x-request-id"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Per-request context, logging and metrics for the SpamZero API.

    - Assigns (or propagates) an `x-request-id`, echoed on every response.
    - Rejects bodies larger than `Settings.MAX_PAYLOAD_BYTES` with a
      `payload_too_large` error before any route or MongoDB work happens.
    - Logs one structured line when the request arrives and one when it
      completes, and records request count and latency in the
      `MetricsManager`. Requests that end in an unhandled exception are still
      logged and counted, as status 500.

    Settings and metrics are the instances the lifespan attached to
    `app.state`. Latency is recorded in seconds for Prometheus and in
    milliseconds in logs.
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        settings: config.Settings | None = getattr(request.app.state, "settings", None)
        metrics_manager: metrics.MetricsManager | None = getattr(
            request.app.state, "metrics_manager", None
        )

        if settings is None or metrics_manager is None:
            raise RuntimeError("Application state was not initialized by the lifespan.")

        request_id: str = request.headers.get(REQUEST_ID_HEADER, str(uuid.uuid4()))
        context = {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }
        started: float = time.perf_counter()

        # Starlette caches the body, so handlers can still read it.
        payload: bytes = await request.body()
        metrics_manager.payload_size.observe(len(payload))

        if len(payload) > settings.MAX_PAYLOAD_BYTES:
            logger.warning("payload rejected", extra={**context, "bytes": len(payload)})
            response = error_response(
                PayloadTooLarge(
                    "Payload too large",
                    details={"limit_bytes": settings.MAX_PAYLOAD_BYTES},
                )
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response

        logger.info(
            "request",
            extra={
                **context,
                "client": request.client.host if request.client else None,
            },
        )

        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            elapsed: float = time.perf_counter() - started

            metrics_manager.request_time.labels(
                route=context["path"], method=request.method
            ).observe(elapsed)
            metrics_manager.requests.labels(
                route=context["path"], method=request.method, status=str(status_code)
            ).inc()

            logger.info(
                "response",
                extra={
                    **context,
                    "status": status_code,
                    "duration_ms": round(elapsed * 1000, 2),
                },
            )
