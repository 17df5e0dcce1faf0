"""
Shared fixtures.  Nothing here touches PostgreSQL, Redis or the network:
storage runs on LocalStorage in a temp dir, and the external clients are
replaced by small fakes.
"""
import fnmatch
import uuid

import pytest

from grylin.schemas.user import NotificationSettings
from grylin.services.analyzer import DocumentAnalyzer
from grylin.services.throttle import RequestThrottle
from grylin.storage.local import LocalStorage


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def storage(tmp_path) -> LocalStorage:
    return LocalStorage(tmp_path / "store")


@pytest.fixture
def prefs() -> NotificationSettings:
    return NotificationSettings()


class FakeRedis:
    """Just enough of redis.asyncio.Redis for AggregateCache."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key):
        return self.data.get(key)

    async def setex(self, key, ttl, value):
        self.data[key] = value
        self.ttls[key] = ttl

    async def delete(self, key):
        existed = key in self.data
        self.data.pop(key, None)
        self.ttls.pop(key, None)
        return int(existed)

    async def scan_iter(self, match="*"):
        for key in list(self.data):
            if fnmatch.fnmatch(key, match):
                yield key


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


class FakeCompletion:
    """Completion client that replays canned replies (or raises them) in order."""

    def __init__(self, *replies):
        self.replies = list(replies)
        self.calls: list[tuple[str, str]] = []

    def _next(self):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def complete(self, system_prompt, user_message, **kwargs):
        self.calls.append(("text", user_message))
        return self._next()

    async def complete_vision(self, prompt, image_url, **kwargs):
        self.calls.append(("vision", image_url))
        return self._next()


@pytest.fixture
def completion() -> FakeCompletion:
    return FakeCompletion()


@pytest.fixture
def analyzer(completion) -> DocumentAnalyzer:
    return DocumentAnalyzer(completion, RequestThrottle(0))
