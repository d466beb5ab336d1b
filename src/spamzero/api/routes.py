from collections.abc import Iterator
from contextlib import contextmanager
from typing import Annotated, Any, Final

from fastapi import APIRouter, Depends, Query, Request, Response
import prometheus_client

from spamzero.api import classifier, metrics, store
from spamzero.api.errors import InvalidInput, NotFound
from spamzero.api.schemas import (
    HealthResponse,
    HistoryCreated,
    HistoryDeleted,
    HistoryStats,
    PredictResponse,
)
from spamzero.api.stats import summarize_history

router: Final[APIRouter] = APIRouter()

MetricsDep = Annotated[metrics.MetricsManager, Depends(metrics.get_metrics_manager)]
StoreDep = Annotated[store.HistoryStore, Depends(store.get_store)]
ClassifierDep = Annotated[classifier.SpamClassifier, Depends(classifier.get_classifier)]


async def read_json_body(request: Request) -> Any:
    """
    Decode the request body as JSON.

    Returns None when the body is empty or not valid JSON; routes decide
    whether that is an error and which message to report.
    """
    try:
        return await request.json()
    except ValueError:
        return None


JsonBody = Annotated[Any, Depends(read_json_body)]


@contextmanager
def track_history_operation(
    metrics_manager: metrics.MetricsManager, operation: str
) -> Iterator[None]:
    """Count a history operation under its outcome label."""
    outcome = "ok"
    try:
        yield
    except InvalidInput:
        outcome = "invalid"
        raise
    except NotFound:
        outcome = "not_found"
        raise
    except Exception:
        outcome = "error"
        raise
    finally:
        metrics_manager.history_operations.labels(
            operation=operation, outcome=outcome
        ).inc()


@router.get("/health", response_model=HealthResponse)
def health():
    """
    Return a basic liveness status.

    Does not touch MongoDB or the remote classifier; see `/ready` for that.
    """
    return HealthResponse(status="ok")


@router.get("/ready")
def ready(history_store: StoreDep):
    """
    Return a readiness signal once MongoDB answers a ping.

    Responds with a 500 `store_unavailable` error while the database is
    unreachable.
    """
    history_store.ping()
    return {"ready": True}


@router.get("/metrics")
def app_metrics(metrics_manager: MetricsDep):
    """Expose runtime metrics for Prometheus to scrape."""
    return Response(
        metrics_manager.render(),
        media_type=prometheus_client.CONTENT_TYPE_LATEST,
    )


@router.post("/history", status_code=201, response_model=HistoryCreated)
def create_history(
    body: JsonBody, history_store: StoreDep, metrics_manager: MetricsDep
):
    """
    Save a classification result to the history.

    Any JSON object is accepted and stored verbatim, plus a server-side
    `createdAt`. Typical bodies carry `text`, `prediction` and `confidence`.

    Raises
    ------
    InvalidInput
        400 if the body is missing, not JSON, or not an object.
    StoreUnavailable
        500 if MongoDB fails.
    """
    with track_history_operation(metrics_manager, "insert"):
        record_id = history_store.insert(body)

    return HistoryCreated(id=record_id)


@router.get("/history")
def list_history(history_store: StoreDep, metrics_manager: MetricsDep):
    """Return every history record, most recent first."""
    with track_history_operation(metrics_manager, "list"):
        return history_store.list_all()


@router.get("/history/stats", response_model=HistoryStats)
def history_stats(history_store: StoreDep, metrics_manager: MetricsDep):
    """Return spam/ham counts and percentages over the current history."""
    with track_history_operation(metrics_manager, "list"):
        records = history_store.list_all()

    return summarize_history(records)


@router.delete("/history", response_model=HistoryDeleted)
def delete_history(
    body: JsonBody,
    history_store: StoreDep,
    metrics_manager: MetricsDep,
    clear_all: Annotated[str | None, Query(alias="all")] = None,
):
    """
    Delete one history record, or all of them with `?all=true`.

    Without `all=true` the body must be `{"id": "<history id>"}`.

    Raises
    ------
    InvalidInput
        400 if the body is not valid JSON, or the id is missing or malformed.
    NotFound
        404 if no record has that id.
    StoreUnavailable
        500 if MongoDB fails.
    """
    if clear_all == "true":
        with track_history_operation(metrics_manager, "delete_all"):
            deleted_count = history_store.delete_all()

        return HistoryDeleted(message="All history deleted", deleted_count=deleted_count)

    with track_history_operation(metrics_manager, "delete"):
        if body is None:
            raise InvalidInput("Provide a valid JSON body with id, or use ?all=true")

        record_id = body.get("id") if isinstance(body, dict) else None
        deleted_count = history_store.delete_by_id(record_id)

    return HistoryDeleted(message="History item deleted", deleted_count=deleted_count)


@router.post("/predict", response_model=PredictResponse)
def predict(body: JsonBody, spam_classifier: ClassifierDep):
    """
    Classify a message as spam or ham through the remote classifier.

    The message is read from `message`, `text` or `inputs` (first string
    wins) and forwarded as `{"message": ...}`; bodies without any of them are
    forwarded as-is.

    Returns
    -------
    PredictResponse
        `{"ok": true, "result": <remote reply>}`.

    Raises
    ------
    ConfigurationError
        500 if no remote endpoint is configured.
    InvalidInput
        400 if the body is missing, not JSON, or not an object.
    UpstreamError
        The remote status code, with the remote body as `details`.
    PredictionFailed
        500 if the remote classifier is unreachable or replies garbage.
    """
    return PredictResponse(result=spam_classifier.classify(body))
