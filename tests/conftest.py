from collections.abc import Callable, Generator, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
import itertools
import json
from types import SimpleNamespace
from typing import Any

import bson
from bson import ObjectId
from fastapi.testclient import TestClient
import httpx
from prometheus_client import CollectorRegistry
from pymongo import DESCENDING
import pytest

from spamzero.api import classifier, config, metrics, store
from spamzero.api.classifier import SpamClassifier
from spamzero.api.main import app
from spamzero.api.store import HistoryStore

PREDICT_URL = "https://classifier.test/predict"


class FakeCursor:
    """Minimal stand-in for a pymongo cursor: sortable and iterable."""

    def __init__(self, documents: list[dict[str, Any]]) -> None:
        self._documents = documents

    def sort(self, key: str, direction: int) -> "FakeCursor":
        self._documents.sort(key=lambda d: d[key], reverse=direction == DESCENDING)
        return self

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(self._documents)


class FakeDatabase:
    def __init__(self, collection: "FakeCollection") -> None:
        self._collection = collection

    def command(self, name: str) -> dict[str, Any]:
        self._collection.check()
        return {"ok": 1.0}


class FakeCollection:
    """
    In-memory subset of `pymongo.collection.Collection` used by HistoryStore.

    Set `failure` to an exception instance to make every operation raise it,
    simulating a lost connection to MongoDB.
    """

    def __init__(self) -> None:
        self.documents: list[dict[str, Any]] = []
        self.failure: Exception | None = None
        self.database = FakeDatabase(self)

    def check(self) -> None:
        if self.failure is not None:
            raise self.failure

    def insert_one(self, document: dict[str, Any]) -> SimpleNamespace:
        self.check()
        # pymongo encodes before sending; unencodable documents fail here.
        bson.encode(document)
        stored = {"_id": ObjectId(), **document}
        self.documents.append(stored)
        return SimpleNamespace(inserted_id=stored["_id"])

    def find(self, query: dict[str, Any]) -> FakeCursor:
        self.check()
        assert query == {}
        return FakeCursor([dict(d) for d in self.documents])

    def delete_one(self, query: dict[str, Any]) -> SimpleNamespace:
        self.check()
        for index, document in enumerate(self.documents):
            if document["_id"] == query["_id"]:
                del self.documents[index]
                return SimpleNamespace(deleted_count=1)

        return SimpleNamespace(deleted_count=0)

    def delete_many(self, query: dict[str, Any]) -> SimpleNamespace:
        self.check()
        assert query == {}
        deleted_count = len(self.documents)
        self.documents.clear()
        return SimpleNamespace(deleted_count=deleted_count)


class FakeRemoteClassifier:
    """
    Deterministic remote classifier served through `httpx.MockTransport`.

    Messages mentioning "free cash" are spam. `response` can be replaced to
    simulate upstream failures; every received request is kept in `calls`.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.response: Callable[[httpx.Request], httpx.Response] | None = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)

        if self.response is not None:
            return self.response(request)

        message = json.loads(request.content).get("message", "")

        if "free cash" in message.lower():
            return httpx.Response(200, json={"prediction": "spam", "confidence": 0.95})

        return httpx.Response(200, json={"prediction": "ham", "confidence": 0.05})


def make_clock() -> Callable[[], datetime]:
    """Strictly increasing clock so listing order is deterministic."""
    ticks = itertools.count()
    start = datetime(2026, 1, 1, tzinfo=UTC)
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture()
def collection() -> FakeCollection:
    return FakeCollection()


@pytest.fixture()
def history_store(collection: FakeCollection) -> HistoryStore:
    return HistoryStore(collection, clock=make_clock())


@pytest.fixture()
def remote() -> FakeRemoteClassifier:
    return FakeRemoteClassifier()


@pytest.fixture()
def http_client(remote: FakeRemoteClassifier) -> Generator[httpx.Client, None, None]:
    with httpx.Client(transport=httpx.MockTransport(remote)) as client:
        yield client


@pytest.fixture()
def metrics_manager() -> metrics.MetricsManager:
    """Use an isolated CollectorRegistry per test for clean metric state."""
    return metrics.MetricsManager(registry=CollectorRegistry())


@pytest.fixture()
def settings() -> config.Settings:
    return config.Settings(
        MONGODB_URI="mongodb://mongo.test:27017",
        PREDICT_URL=PREDICT_URL,
        LOG_JSON=True,
    )


@pytest.fixture()
def unconfigured_settings() -> config.Settings:
    """Settings without a remote classifier endpoint."""
    return config.Settings(MONGODB_URI="mongodb://mongo.test:27017", LOG_JSON=True)


def build_client(
    settings: config.Settings,
    history_store: HistoryStore,
    http_client: httpx.Client,
    metrics_manager: metrics.MetricsManager,
) -> Generator[TestClient, None, None]:
    @contextmanager
    def open_store(_: config.Settings) -> Iterator[HistoryStore]:
        yield history_store

    @contextmanager
    def open_classifier(
        s: config.Settings, m: metrics.MetricsManager
    ) -> Iterator[SpamClassifier]:
        url = str(s.PREDICT_URL) if s.PREDICT_URL else None
        yield SpamClassifier(url, http_client, upstream_time=m.upstream_time)

    app.dependency_overrides[config.get_settings] = lambda: settings
    app.dependency_overrides[metrics.get_metrics_manager] = lambda: metrics_manager
    app.dependency_overrides[store.get_store_opener] = lambda: open_store
    app.dependency_overrides[classifier.get_classifier_opener] = lambda: open_classifier

    # Use the client as a context to run the lifespan function.
    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture()
def client(
    settings: config.Settings,
    history_store: HistoryStore,
    http_client: httpx.Client,
    metrics_manager: metrics.MetricsManager,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient over the fake store and fake remote classifier."""
    yield from build_client(settings, history_store, http_client, metrics_manager)


@pytest.fixture()
def unconfigured_client(
    unconfigured_settings: config.Settings,
    history_store: HistoryStore,
    http_client: httpx.Client,
    metrics_manager: metrics.MetricsManager,
) -> Generator[TestClient, None, None]:
    """Same as `client` but with no remote classifier endpoint configured."""
    yield from build_client(
        unconfigured_settings, history_store, http_client, metrics_manager
    )
