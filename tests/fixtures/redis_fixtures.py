"""In-memory Redis double covering the commands the pipeline uses."""

import importlib
import time

import pytest


class FakeRedis:
    """SET NX/EX, GET, EXISTS, DELETE, INCR, EXPIRE and the unlock EVAL script."""

    def __init__(self):
        self.store = {}
        self.expires_at = {}

    def _alive(self, key):
        deadline = self.expires_at.get(key)
        if deadline is not None and deadline <= time.monotonic():
            self.store.pop(key, None)
            self.expires_at.pop(key, None)
        return key in self.store

    def set(self, key, value, nx=False, ex=None):
        if nx and self._alive(key):
            return None
        self.store[key] = str(value)
        if ex is not None:
            self.expires_at[key] = time.monotonic() + ex
        else:
            self.expires_at.pop(key, None)
        return True

    def get(self, key):
        return self.store[key] if self._alive(key) else None

    def exists(self, *keys):
        return sum(1 for key in keys if self._alive(key))

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.store.pop(key, None)
            self.expires_at.pop(key, None)
        return removed

    def incr(self, key, amount=1):
        value = int(self.get(key) or 0) + amount
        self.store[key] = str(value)
        return value

    def expire(self, key, seconds):
        if not self._alive(key):
            return False
        self.expires_at[key] = time.monotonic() + seconds
        return True

    def eval(self, script, numkeys, *args):
        keys, argv = args[:numkeys], args[numkeys:]
        # Only the compare-and-delete unlock script is used
        if self.get(keys[0]) == argv[0]:
            return self.delete(keys[0])
        return 0

    def force_expire(self, key):
        """Simulate the TTL running out."""
        self.expires_at[key] = time.monotonic() - 1


@pytest.fixture(scope="function")
def redis_client():
    return FakeRedis()


@pytest.fixture(scope="function")
def patch_redis(redis_client, monkeypatch):
    """Route ``get_redis()`` in tasks to the in-memory double.

    ``app.tasks`` re-exports each task under its module's name, so the
    modules are looked up explicitly.
    """
    for module in (
        "app.tasks.instagram_events_task",
        "app.tasks.facebook_events_task",
        "app.tasks.whatsapp_events_task",
        "app.tasks.webhook_task",
    ):
        monkeypatch.setattr(
            importlib.import_module(module), "get_redis", lambda: redis_client
        )
    return redis_client
