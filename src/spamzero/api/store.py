from collections.abc import Callable, Iterator
from contextlib import AbstractContextManager, contextmanager
from datetime import UTC, datetime
import functools
import logging
from typing import Any, Final, TypeAlias

from bson import ObjectId
from bson.errors import BSONError
from fastapi import Request
from pymongo import DESCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from spamzero.api import config
from spamzero.api.errors import InvalidInput, NotFound, StoreUnavailable

logger = logging.getLogger("app.store")

# Server-assigned insertion timestamp; the only sort key for listings.
CREATED_AT_FIELD: Final[str] = "createdAt"

# Identifier keys a client may not choose for itself.
RESERVED_ID_FIELDS: Final[tuple[str, ...]] = ("_id", "id")


def utc_now() -> datetime:
    return datetime.now(UTC)


class HistoryStore:
    """
    Persistence for classification history, backed by a MongoDB collection.

    Records are schema-free JSON objects. The store only adds what it owns:
    a fresh `ObjectId` and a `createdAt` timestamp taken from its own clock.
    Listings expose the identifier as a plain string under `id`.

    Driver failures are never retried here; they surface as
    `StoreUnavailable` with the driver message attached. Records BSON cannot
    represent (integers beyond 64 bits, keys containing NUL) are rejected as
    `InvalidInput`.
    """

    def __init__(
        self, collection: Collection, clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._collection: Collection = collection
        self._clock: Callable[[], datetime] = clock

    def insert(self, record: Any) -> str:
        """
        Persist a history record and return its new identifier.

        Raises
        ------
        InvalidInput
            `record` is not a JSON object, or holds values BSON cannot encode.
        StoreUnavailable
            The insert failed in the driver.
        """
        if not isinstance(record, dict):
            raise InvalidInput("Invalid request body")

        document = {
            key: value for key, value in record.items() if key not in RESERVED_ID_FIELDS
        }
        document[CREATED_AT_FIELD] = self._clock()

        with self._driver_errors("Failed to save history", "insert"):
            result = self._collection.insert_one(document)

        return str(result.inserted_id)

    def list_all(self) -> list[dict[str, Any]]:
        """Return every record, most recent first, with `id` as a string."""
        with self._driver_errors("Failed to fetch history", "list"):
            documents = list(
                self._collection.find({}).sort(CREATED_AT_FIELD, DESCENDING)
            )

        return [_with_string_id(document) for document in documents]

    def delete_by_id(self, record_id: Any) -> int:
        """
        Delete one record by identifier.

        Returns
        -------
        int
            The number of removed records, always 1.

        Raises
        ------
        InvalidInput
            The identifier is missing, blank, or not a valid ObjectId.
        NotFound
            No record has that identifier (including one already deleted).
        """
        if not isinstance(record_id, str) or not record_id.strip():
            raise InvalidInput("Missing history id")

        if not ObjectId.is_valid(record_id):
            raise InvalidInput("Invalid history id")

        with self._driver_errors("Failed to delete history", "delete"):
            result = self._collection.delete_one({"_id": ObjectId(record_id)})

        if result.deleted_count == 0:
            raise NotFound("History item not found")

        return result.deleted_count

    def delete_all(self) -> int:
        """Unconditionally delete every record and return how many were removed."""
        with self._driver_errors("Failed to delete history", "delete_all"):
            result = self._collection.delete_many({})

        return result.deleted_count

    def ping(self) -> None:
        """Round-trip to the server, raising `StoreUnavailable` if it is unreachable."""
        with self._driver_errors("History store unavailable", "ping"):
            self._collection.database.command("ping")

    @contextmanager
    def _driver_errors(self, message: str, operation: str) -> Iterator[None]:
        try:
            yield
        except (BSONError, OverflowError) as exc:
            logger.warning(
                "history record not encodable",
                extra={"operation": operation, "error": str(exc)},
            )
            raise InvalidInput("History record cannot be stored", details=str(exc)) from exc
        except PyMongoError as exc:
            logger.error(
                "history store failure",
                extra={"operation": operation, "error": str(exc)},
            )
            raise StoreUnavailable(message, details=str(exc)) from exc


def _with_string_id(document: dict[str, Any]) -> dict[str, Any]:
    record = {key: value for key, value in document.items() if key != "_id"}
    return {"id": str(document["_id"]), **record}


@contextmanager
def open_history_store(settings: config.Settings) -> Iterator[HistoryStore]:
    """
    Connect to MongoDB and yield a `HistoryStore` for the process lifetime.

    One `MongoClient` (with its internal connection pool) is created here and
    closed when the context exits; request handlers share it through
    `app.state.store`.
    """
    client: MongoClient = MongoClient(settings.MONGODB_URI, tz_aware=True)

    try:
        collection = client[settings.MONGODB_DB][settings.MONGODB_COLLECTION]
        logger.info(
            "Opened history store",
            extra={
                "database": settings.MONGODB_DB,
                "collection": settings.MONGODB_COLLECTION,
            },
        )
        yield HistoryStore(collection)
    finally:
        client.close()


# Expose a callable signature representing "open a store for these settings".
StoreOpener: TypeAlias = Callable[[config.Settings], AbstractContextManager[HistoryStore]]


@functools.cache
def get_store_opener() -> StoreOpener:
    """
    Dependency provider returning the function that opens the history store.

    Tests override it to hand out a store over an in-memory collection.
    """
    return open_history_store


def get_store(request: Request) -> HistoryStore:
    """FastAPI dependency returning the store opened by the lifespan."""
    return request.app.state.store
