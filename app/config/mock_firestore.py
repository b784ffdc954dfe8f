"""
In-memory stand-in for the Firestore client.

Used when USE_MOCK_DB is enabled (local development without Firebase
credentials) and by the test-suite. It implements only the subset of the
google-cloud-firestore surface this service relies on:

- client.collection(name) / client.collections()
- collection.document(id).set/get/update/delete
- collection/query .where(field, op, value) .order_by(field, direction)
  .limit(n) .offset(n) .stream()
- client.write_option(last_update_time=...) preconditions on update()

Preconditions fail with the same google.api_core exception the real client
raises, so callers handle both identically.
"""

import copy
import threading
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterator, List, Optional
import uuid

from google.api_core.exceptions import FailedPrecondition, NotFound


DESCENDING = "DESCENDING"
ASCENDING = "ASCENDING"


class MockWriteOption:
    def __init__(self, last_update_time: Optional[datetime] = None, exists: Optional[bool] = None):
        self.last_update_time = last_update_time
        self.exists = exists


class MockDocumentSnapshot:
    def __init__(self, doc_id: str, data: Optional[Dict], update_time: Optional[datetime], reference):
        self.id = doc_id
        self._data = data
        self.update_time = update_time
        self.reference = reference

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[Dict]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        return _get_field(self._data or {}, field_path)


class MockDocumentReference:
    def __init__(self, collection: "MockCollection", doc_id: str):
        self._collection = collection
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self._collection.id}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        with self._collection._client._lock:
            entry = self._collection._docs.get(self.id)
            if entry is None:
                return MockDocumentSnapshot(self.id, None, None, self)
            return MockDocumentSnapshot(self.id, copy.deepcopy(entry["data"]), entry["update_time"], self)

    def set(self, data: Dict, merge: bool = False) -> None:
        with self._collection._client._lock:
            existing = self._collection._docs.get(self.id)
            if merge and existing is not None:
                new_data = existing["data"]
                new_data.update(copy.deepcopy(data))
            else:
                new_data = copy.deepcopy(data)
            self._collection._docs[self.id] = {
                "data": new_data,
                "update_time": self._collection._client._next_update_time(),
            }

    def update(self, field_updates: Dict, option: Optional[MockWriteOption] = None) -> None:
        with self._collection._client._lock:
            entry = self._collection._docs.get(self.id)
            if entry is None:
                raise NotFound(f"No document to update: {self.path}")
            if option is not None and option.last_update_time is not None:
                if entry["update_time"] != option.last_update_time:
                    raise FailedPrecondition(
                        f"Document {self.path} was modified after {option.last_update_time.isoformat()}"
                    )
            for field_path, value in field_updates.items():
                _set_field(entry["data"], field_path, copy.deepcopy(value))
            entry["update_time"] = self._collection._client._next_update_time()

    def delete(self) -> None:
        with self._collection._client._lock:
            self._collection._docs.pop(self.id, None)


class MockQuery:
    def __init__(self, collection: "MockCollection", filters=None, orders=None, limit_count=None, offset_count=0):
        self._collection = collection
        self._filters = list(filters or [])
        self._orders = list(orders or [])
        self._limit = limit_count
        self._offset = offset_count

    def _copy(self, **overrides) -> "MockQuery":
        params = {
            "filters": self._filters,
            "orders": self._orders,
            "limit_count": self._limit,
            "offset_count": self._offset,
        }
        params.update(overrides)
        return MockQuery(self._collection, **params)

    def where(self, field_path: str, op_string: str, value: Any) -> "MockQuery":
        return self._copy(filters=self._filters + [(field_path, op_string, value)])

    def order_by(self, field_path: str, direction: str = ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + [(field_path, direction)])

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit_count=count)

    def offset(self, count: int) -> "MockQuery":
        return self._copy(offset_count=count)

    def stream(self) -> Iterator[MockDocumentSnapshot]:
        with self._collection._client._lock:
            items = [
                (doc_id, copy.deepcopy(entry["data"]), entry["update_time"])
                for doc_id, entry in self._collection._docs.items()
            ]

        matched = [item for item in items if all(_matches(item[1], f) for f in self._filters)]

        for field_path, direction in reversed(self._orders):
            matched.sort(
                key=lambda item: _sort_key(_get_field(item[1], field_path)),
                reverse=(direction == DESCENDING),
            )

        matched = matched[self._offset:]
        if self._limit is not None:
            matched = matched[:self._limit]

        for doc_id, data, update_time in matched:
            yield MockDocumentSnapshot(doc_id, data, update_time, self._collection.document(doc_id))

    def get(self) -> List[MockDocumentSnapshot]:
        return list(self.stream())


class MockCollection(MockQuery):
    def __init__(self, client: "MockFirestore", name: str):
        self._client = client
        self.id = name
        self._docs: Dict[str, Dict] = client._store.setdefault(name, {})
        super().__init__(self)

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self, document_id or uuid.uuid4().hex[:20])


class MockFirestore:
    """Thread-safe in-memory document database."""

    def __init__(self):
        self._store: Dict[str, Dict[str, Dict]] = {}
        self._lock = threading.RLock()
        self._last_update_time: Optional[datetime] = None

    def collection(self, name: str) -> MockCollection:
        return MockCollection(self, name)

    def collections(self) -> List[MockCollection]:
        return [MockCollection(self, name) for name in self._store]

    def write_option(self, **kwargs) -> MockWriteOption:
        return MockWriteOption(**kwargs)

    def _next_update_time(self) -> datetime:
        # Strictly increasing so preconditions never see two writes as one
        now = datetime.now(timezone.utc)
        if self._last_update_time is not None and now <= self._last_update_time:
            now = self._last_update_time + timedelta(microseconds=1)
        self._last_update_time = now
        return now


def _get_field(data: Dict, field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _set_field(data: Dict, field_path: str, value: Any) -> None:
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = value


def _matches(data: Dict, condition) -> bool:
    field_path, op, expected = condition
    actual = _get_field(data, field_path)
    if op == "==":
        return actual == expected
    if op == "!=":
        return actual != expected
    if op == "in":
        return actual in expected
    if op == "not-in":
        return actual not in expected
    if op == "array_contains":
        return isinstance(actual, list) and expected in actual
    if actual is None:
        return False
    if op == "<":
        return actual < expected
    if op == "<=":
        return actual <= expected
    if op == ">":
        return actual > expected
    if op == ">=":
        return actual >= expected
    raise ValueError(f"Unsupported operator: {op}")


def _sort_key(value: Any):
    # None sorts first, like Firestore's null ordering
    return (value is not None, value if value is not None else 0)


_mock_db: Optional[MockFirestore] = None


def get_mock_db() -> MockFirestore:
    """Get or create the process-wide mock database."""
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestore()
    return _mock_db
