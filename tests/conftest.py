"""
Shared fixtures: an in-memory Firestore stand-in, recording sinks and hosts,
and a TestClient wired to them through dependency overrides.
"""

import asyncio
import copy
import itertools
from datetime import datetime, timezone
from typing import Optional

import httpx
import pytest
from fastapi.testclient import TestClient
from firebase_admin import firestore
from google.api_core.exceptions import NotFound, ServiceUnavailable

from barbershop import rate_limiter
from barbershop.auth import CurrentUser, get_current_user
from barbershop.firebase import ServiceClients
from barbershop.notifications.relay import PushRelay, get_push_relay
from barbershop.notifications.sinks import DeliveryResult
from barbershop.queue.monitor import WatchRegistry

_ids = itertools.count(1)


class FakeSnapshot:
    def __init__(self, doc_id: str, data: Optional[dict], reference=None):
        self.id = doc_id
        self._data = data
        self.reference = reference

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, collection: "FakeCollection", doc_id: str):
        self.collection = collection
        self.id = doc_id

    @property
    def _docs(self) -> dict:
        return self.collection.docs

    def get(self) -> FakeSnapshot:
        return FakeSnapshot(self.id, self._docs.get(self.id), self)

    def set(self, data: dict, merge: bool = False) -> None:
        if merge and self.id in self._docs:
            self._docs[self.id].update(copy.deepcopy(data))
        else:
            self._docs[self.id] = copy.deepcopy(data)
        self.collection.changed()

    def update(self, data: dict) -> None:
        if self.id not in self._docs:
            raise NotFound(f"No document to update: {self.collection.name}/{self.id}")
        for key, value in data.items():
            if value is firestore.DELETE_FIELD:
                self._docs[self.id].pop(key, None)
            else:
                self._docs[self.id][key] = copy.deepcopy(value)
        self.collection.changed()


class FakeWatch:
    def __init__(self, query: "FakeQuery", callback):
        self.query = query
        self.callback = callback
        self.active = True

    def fire(self) -> None:
        if self.active:
            self.callback(list(self.query.stream()), [], datetime.now(timezone.utc))

    def unsubscribe(self) -> None:
        self.active = False


class FakeQuery:
    def __init__(self, collection: "FakeCollection", filters=(), order=None, limit_to=None):
        self.collection = collection
        self.filters = tuple(filters)
        self.order = order
        self.limit_to = limit_to

    def where(self, filter) -> "FakeQuery":
        return FakeQuery(self.collection, self.filters + (filter,), self.order, self.limit_to)

    def order_by(self, field_path: str, direction: str = "ASCENDING") -> "FakeQuery":
        return FakeQuery(self.collection, self.filters, (field_path, direction), self.limit_to)

    def limit(self, count: int) -> "FakeQuery":
        return FakeQuery(self.collection, self.filters, self.order, count)

    @staticmethod
    def _matches(data: dict, f) -> bool:
        value = data.get(f.field_path)
        if f.op_string == "==":
            return value == f.value
        if f.op_string == "in":
            return value in f.value
        raise NotImplementedError(f.op_string)

    def stream(self):
        rows = [
            (doc_id, data)
            for doc_id, data in self.collection.docs.items()
            if all(self._matches(data, f) for f in self.filters)
        ]
        if self.order:
            field_path, direction = self.order
            rows.sort(key=lambda r: r[1].get(field_path), reverse=direction == "DESCENDING")
        if self.limit_to is not None:
            rows = rows[: self.limit_to]
        for doc_id, data in rows:
            yield FakeSnapshot(doc_id, copy.deepcopy(data), self.collection.document(doc_id))

    def on_snapshot(self, callback) -> FakeWatch:
        watch = FakeWatch(self, callback)
        self.collection.watches.append(watch)
        watch.fire()
        return watch


class FakeCollection(FakeQuery):
    def __init__(self, name: str):
        super().__init__(self)
        self.name = name
        self.docs: dict[str, dict] = {}
        self.watches: list[FakeWatch] = []

    def document(self, doc_id: str) -> FakeDocument:
        return FakeDocument(self, doc_id)

    def add(self, data: dict):
        doc = self.document(f"{self.name}-{next(_ids)}")
        doc.set(data)
        return datetime.now(timezone.utc), doc

    def changed(self) -> None:
        for watch in list(self.watches):
            watch.fire()


class FakeFirestore:
    def __init__(self):
        self.collections: dict[str, FakeCollection] = {}

    def collection(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    def seed(self, name: str, doc_id: str, data: dict) -> None:
        self.collection(name).docs[doc_id] = copy.deepcopy(data)

    def data(self, name: str, doc_id: str) -> Optional[dict]:
        return self.collection(name).docs.get(doc_id)

    def all(self, name: str) -> list[dict]:
        return list(self.collection(name).docs.values())


class FailingCollection(FakeCollection):
    def add(self, data: dict):
        raise RuntimeError("firestore unavailable")


class UnavailableCollection(FakeCollection):
    def document(self, doc_id: str):
        raise ServiceUnavailable("firestore unavailable")


class RecordingSink:
    """Records deliveries; optionally holds them until released"""

    channel = "test"

    def __init__(self, hold: bool = False, error: Optional[Exception] = None):
        self.deliveries: list[tuple[str, str, dict]] = []
        self.cancelled = 0
        self.error = error
        self.release = asyncio.Event()
        if not hold:
            self.release.set()

    async def deliver(self, title: str, body: str, metadata: Optional[dict] = None) -> DeliveryResult:
        self.deliveries.append((title, body, dict(metadata or {})))
        await self.release.wait()
        if self.error is not None:
            raise self.error
        return DeliveryResult(success=True, channel=self.channel, delivery_id=f"d{len(self.deliveries)}")

    def cancel(self) -> None:
        self.cancelled += 1

    @property
    def positions(self) -> list[int]:
        return [metadata["position"] for _, _, metadata in self.deliveries]


class FakeHandle:
    def __init__(self, tag: str):
        self.tag = tag
        self.closed = False

    def close(self) -> None:
        self.closed = True


class FakeHost:
    def __init__(self, permission: str = "granted", answer: bool = True, fail_show: bool = False):
        self._permission = permission
        self.answer = answer
        self.fail_show = fail_show
        self.prompts = 0
        self.shown: list[tuple[dict, FakeHandle]] = []

    def permission(self) -> str:
        return self._permission

    async def request_permission(self) -> bool:
        self.prompts += 1
        if self.answer:
            self._permission = "granted"
        return self.answer

    def show(self, title, body, icon, tag, data) -> FakeHandle:
        if self.fail_show:
            raise RuntimeError("notification API unavailable")
        handle = FakeHandle(tag)
        self.shown.append(({"title": title, "body": body, "icon": icon, "tag": tag, "data": data}, handle))
        return handle


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def sent_messages():
    return []


@pytest.fixture
def fake_send(sent_messages):
    def send(message):
        sent_messages.append(message)
        return f"projects/sahala/messages/{len(sent_messages)}"

    return send


@pytest.fixture
def admin_user():
    return CurrentUser(uid="admin-1", email="owner@sahala.id", name="Akmal", role="admin")


@pytest.fixture
def customer_user():
    return CurrentUser(uid="cust-1", email="budi@example.com", name="Budi", role="customer")


@pytest.fixture
def app_factory(db, fake_send, monkeypatch):
    """Build the app against the fake store, authenticated as the given user"""
    from barbershop.main import app

    monkeypatch.setattr(rate_limiter, "RATE_LIMIT_ENABLED", False)
    clients = ServiceClients(firebase_app=None, db=db, http=httpx.AsyncClient())

    def build(user: CurrentUser, send=None) -> TestClient:
        app.state.clients = clients
        app.state.watch_registry = WatchRegistry()
        app.dependency_overrides[get_current_user] = lambda: user
        app.dependency_overrides[get_push_relay] = lambda: PushRelay(db, send=send or fake_send)
        return TestClient(app)

    yield build
    app.dependency_overrides.clear()
