from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
import functools
import logging
from typing import Any, Final, TypeAlias

from fastapi import Request
import httpx
from prometheus_client import Histogram

from spamzero.api import config, metrics
from spamzero.api.errors import (
    ConfigurationError,
    InvalidInput,
    PredictionFailed,
    UpstreamError,
)

logger = logging.getLogger("app.classifier")

# Body fields that may carry the message, in order of preference. Remote
# schemas differ on the name, so all three are accepted.
TEXT_FIELDS: Final[tuple[str, ...]] = ("message", "text", "inputs")


def extract_text(body: dict[str, Any]) -> str:
    """Return the first string among the accepted text fields, or ""."""
    for field in TEXT_FIELDS:
        value = body.get(field)
        if isinstance(value, str):
            return value

    return ""


def build_payload(body: dict[str, Any]) -> dict[str, Any]:
    """
    Build the JSON payload sent to the remote classifier.

    A usable text is normalized to `{"message": text}`; otherwise the caller's
    body is forwarded untouched so unusual remote schemas keep working.
    """
    text = extract_text(body)

    if text.strip():
        return {"message": text}

    return body


class SpamClassifier:
    """
    Proxy to a remotely hosted spam classifier.

    Each call is a single best-effort HTTP POST: no timeout, no retry, no
    caching. Only requests that actually reach the remote are timed in
    `upstream_time`. The remote reply is returned as parsed JSON when the
    response declares a JSON content type, and as raw text otherwise.
    """

    def __init__(
        self,
        url: str | None,
        client: httpx.Client,
        upstream_time: Histogram | None = None,
    ) -> None:
        self._url: str | None = url
        self._client: httpx.Client = client
        self._upstream_time: Histogram | None = upstream_time

    @property
    def configured(self) -> bool:
        return bool(self._url)

    def classify(self, body: Any) -> Any:
        """
        Classify the message held in a request body.

        Parameters
        ----------
        body : Any
            The decoded JSON request body, or None when it was missing or not
            valid JSON.

        Returns
        -------
        Any
            The remote classifier's reply (usually an object carrying
            `prediction` and `confidence`).

        Raises
        ------
        ConfigurationError
            No remote endpoint is configured. Raised before the body is even
            looked at, and before any network call.
        InvalidInput
            The body is missing, not JSON, or not a JSON object.
        UpstreamError
            The remote classifier replied with a non-success status.
        PredictionFailed
            The remote classifier was unreachable or its reply unreadable.
        """
        if not self._url:
            raise ConfigurationError("Missing SPAMZERO_PREDICT_URL in environment")

        if body is None:
            raise InvalidInput("Invalid JSON body")

        if not isinstance(body, dict):
            raise InvalidInput("Request body must be a JSON object")

        timer = self._upstream_time.time() if self._upstream_time else nullcontext()

        try:
            with timer:
                response = self._client.post(self._url, json=build_payload(body))
            result = _parse_response(response)
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("remote classifier call failed", extra={"error": str(exc)})
            raise PredictionFailed("Failed to fetch prediction", details=str(exc)) from exc

        if not response.is_success:
            logger.warning(
                "remote classifier rejected request",
                extra={"upstream_status": response.status_code},
            )
            raise UpstreamError(
                "Remote prediction request failed",
                status=response.status_code,
                details=result,
            )

        return result


def _parse_response(response: httpx.Response) -> Any:
    if "application/json" in response.headers.get("content-type", ""):
        return response.json()

    return response.text


def make_http_client(transport: httpx.BaseTransport | None = None) -> httpx.Client:
    """
    Build the HTTP client used to reach the remote classifier.

    No timeout is applied, and redirects are followed so a hosted endpoint
    that moved (or upgrades http to https) still answers with its reply.
    """
    return httpx.Client(timeout=None, follow_redirects=True, transport=transport)


@contextmanager
def open_classifier(
    settings: config.Settings, metrics_manager: metrics.MetricsManager
) -> Iterator[SpamClassifier]:
    """Yield a `SpamClassifier` owning one HTTP client for the process lifetime."""
    url = str(settings.PREDICT_URL) if settings.PREDICT_URL else None

    if url is None:
        logger.warning("SPAMZERO_PREDICT_URL is not set; /predict will fail")

    with make_http_client() as client:
        yield SpamClassifier(url, client, upstream_time=metrics_manager.upstream_time)


ClassifierOpener: TypeAlias = Callable[
    [config.Settings, metrics.MetricsManager], AbstractContextManager[SpamClassifier]
]


@functools.cache
def get_classifier_opener() -> ClassifierOpener:
    """
    Dependency provider returning the function that opens the classifier.

    Tests override it to route requests through an `httpx.MockTransport`.
    """
    return open_classifier


def get_classifier(request: Request) -> SpamClassifier:
    """FastAPI dependency returning the classifier opened by the lifespan."""
    return request.app.state.classifier
