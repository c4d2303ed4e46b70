import threading
import time
from typing import Callable, Dict, Iterable, List, Optional

import pytest

from corridor.common import CacheError, NotFoundError, ProviderError
from corridor.geo import GeoPoint, SearchCircle, haversine_m
from corridor.ingest import DiscoveredEntity, InMemoryEntityCache, NoopObserver


class FakeSearch:
    """Search collaborator returning every known entity inside the circle."""

    def __init__(
        self,
        entities: Iterable[DiscoveredEntity] = (),
        handler: Optional[Callable] = None,
    ):
        self.entities = list(entities)
        self.handler = handler
        self.calls: List[SearchCircle] = []
        self._lock = threading.Lock()

    def search(self, query, circle, token):
        with self._lock:
            self.calls.append(circle)
            call_number = len(self.calls)
        if self.handler is not None:
            return self.handler(query, circle, token, call_number)
        return [
            DiscoveredEntity(identity=e.identity)
            for e in self.entities
            if e.location is not None
            and haversine_m(circle.center, e.location) <= circle.radius_m
        ]


class FakeDetail:
    """Detail collaborator backed by a dict; unknown identities are not found."""

    def __init__(self, entities: Iterable[DiscoveredEntity] = (), failures=None):
        self.entities: Dict[str, DiscoveredEntity] = {e.identity: e for e in entities}
        self.failures: Dict[str, List[Exception]] = dict(failures or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def fetch(self, identity, token):
        with self._lock:
            self.calls.append(identity)
            pending = self.failures.get(identity)
            error = pending.pop(0) if pending else None
        if error is not None:
            raise error
        if identity not in self.entities:
            raise NotFoundError(identity)
        return self.entities[identity]


class FailingWriteCache(InMemoryEntityCache):
    def put(self, identity, entity):
        raise CacheError("cache store is read-only")


class FailingReadCache(InMemoryEntityCache):
    def get(self, identity):
        raise CacheError("cache store unavailable")


class RecordingObserver(NoopObserver):
    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def _record(self, *event):
        with self._lock:
            self.events.append(event)

    def phase_start(self, phase, **kw):
        self._record("phase_start", phase)

    def phase_end(self, phase, **kw):
        self._record("phase_end", phase, kw["results"])

    def cache_hit(self, identity, **_):
        self._record("cache_hit", identity)

    def cache_miss(self, identity, **_):
        self._record("cache_miss", identity)

    def cache_write_failed(self, identity, error, **_):
        self._record("cache_write_failed", identity)

    def error(self, phase, error, **_):
        self._record("error", phase, type(error).__name__)

    def of_kind(self, kind):
        return [e for e in self.events if e[0] == kind]


def wait_for_cancel(token, timeout=5.0):
    """Block like a slow provider call until the phase is cancelled."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if token.cancelled:
            token.raise_if_cancelled()
        time.sleep(0.005)
    raise AssertionError("task was never cancelled")


def station(identity, lat, lng, **attributes):
    return DiscoveredEntity(
        identity=identity, attributes=attributes, location=GeoPoint(lat, lng)
    )


@pytest.fixture
def observer():
    return RecordingObserver()


@pytest.fixture
def provider_error():
    return ProviderError("search backend returned 500")
