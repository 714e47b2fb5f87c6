"""Shared fixtures: a fixed clock and an in-memory stand-in for the Firestore client."""

import os

os.environ["ENABLE_CLOUD_LOGGING"] = "false"
os.environ.pop("GCS_BUCKET_NAME", None)

import copy
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from google.cloud import firestore

from services.auth_service import Session
from services.firestore_service import FirestoreService

T0 = datetime(2025, 1, 10, 9, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeSnapshot:
    def __init__(self, reference, data):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, db, path):
        self._db = db
        self.path = path
        self.id = path[-1]

    @property
    def parent(self):
        return FakeCollection(self._db, self.path[:-1])

    def collection(self, name):
        return FakeCollection(self._db, self.path + (name,))

    def get(self):
        return FakeSnapshot(self, self._db.docs.get(self.path))

    def set(self, data):
        self._db.writes.append(("set", self.path))
        self._db.docs[self.path] = self._db.resolve(data, {})

    def update(self, data):
        if self.path not in self._db.docs:
            raise KeyError(f"No document to update: {'/'.join(self.path)}")
        self._db.writes.append(("update", self.path))
        self._db.docs[self.path] = self._db.resolve(data, self._db.docs[self.path])

    def delete(self):
        self._db.writes.append(("delete", self.path))
        self._db.docs.pop(self.path, None)


class FakeQuery:
    def __init__(self, collection, field=None, direction=None):
        self._collection = collection
        self._field = field
        self._direction = direction

    def stream(self):
        docs = list(self._collection.stream())
        if self._field:
            docs.sort(
                key=lambda s: (s.to_dict().get(self._field) is not None, s.to_dict().get(self._field) or 0),
                reverse=self._direction == firestore.Query.DESCENDING,
            )
        return iter(docs)


class FakeCollection:
    def __init__(self, db, path):
        self._db = db
        self.path = path

    @property
    def parent(self):
        return FakeDocument(self._db, self.path[:-1]) if len(self.path) > 1 else None

    def document(self, doc_id=None):
        if doc_id is None:
            doc_id = f"doc{next(self._db.ids)}"
        return FakeDocument(self._db, self.path + (doc_id,))

    def order_by(self, field, direction=firestore.Query.ASCENDING):
        return FakeQuery(self, field, direction)

    def stream(self):
        depth = len(self.path) + 1
        for path in list(self._db.docs):
            if len(path) == depth and path[:-1] == self.path:
                yield FakeSnapshot(FakeDocument(self._db, path), self._db.docs[path])


class FakeFirestore:
    """Just enough of google.cloud.firestore.Client for FirestoreService."""

    def __init__(self, clock):
        self.docs = {}
        self.writes = []
        self.ids = itertools.count(1)
        self._clock = clock
        self._server_ticks = itertools.count()

    def collection(self, name):
        return FakeCollection(self, (name,))

    def resolve(self, data, current):
        result = dict(current)
        for key, value in data.items():
            if value is firestore.DELETE_FIELD:
                result.pop(key, None)
            elif value is firestore.SERVER_TIMESTAMP:
                # strictly increasing so createdAt ordering is deterministic
                result[key] = self._clock() + timedelta(microseconds=next(self._server_ticks))
            else:
                result[key] = value
        return result

    def book_doc(self, user_id, book_id):
        return self.docs.get(("users", user_id, "books", book_id))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_db(clock):
    return FakeFirestore(clock)


@pytest.fixture
def store(fake_db, clock):
    return FirestoreService(client=fake_db, clock=clock)


@pytest.fixture
def session():
    return Session(user_id="user-1", display_name="読書 太郎", email="taro@example.com")
