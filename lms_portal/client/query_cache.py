"""Keyed query cache with stale-while-revalidate reads.

Keys are resource paths plus sorted query parameters, e.g.
``/api/users?role=teacher``. A cached value is always returned immediately;
stale entries are refreshed in the background. Invalidation matches by path
prefix on segment boundaries, so ``/api/users`` covers ``/api/users/3`` and
``/api/users?role=student`` but not ``/api/users-archive``.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from urllib.parse import urlencode

from lms_portal.client.transport import ClientError

logger = logging.getLogger(__name__)


def make_key(path, params=None):
    items = []
    for name, value in sorted((params or {}).items()):
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        items.append((name, value))
    if not items:
        return path
    return f"{path}?{urlencode(items)}"


def key_matches(key, prefix):
    if key == prefix:
        return True
    return key.startswith(prefix) and key[len(prefix)] in "/?"


class InlineExecutor:
    """Runs refetches on the calling thread. Useful for scripts and tests."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future

    def shutdown(self, wait=True):
        pass


class CacheEntry:
    __slots__ = (
        "data", "updated_at", "stale", "error", "pending", "generation", "subscribers"
    )

    def __init__(self):
        self.data = None
        self.updated_at = None
        self.stale = True
        self.error = None
        self.pending = None
        # Bumped on every invalidation; a refetch started before the bump is discarded
        self.generation = 0
        self.subscribers = []

    @property
    def has_data(self):
        return self.updated_at is not None


class QueryCache:
    def __init__(self, fetcher, executor=None, stale_time=None, clock=time.monotonic):
        """
        ``fetcher(key)`` returns fresh data for a key or raises ClientError.
        ``stale_time`` is seconds before data goes stale on its own; None means
        only invalidation makes it stale.
        """
        self._fetcher = fetcher
        self._executor = executor or ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="query-cache"
        )
        self._stale_time = stale_time
        self._clock = clock
        self._entries = {}
        self._lock = threading.RLock()

    def _entry(self, key):
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = self._entries[key] = CacheEntry()
            return entry

    def _is_stale(self, entry):
        if entry.stale:
            return True
        if self._stale_time is None:
            return False
        return self._clock() - entry.updated_at >= self._stale_time

    def get(self, key):
        """Cached data for ``key``; only the very first load blocks on the network."""
        entry = self._entry(key)
        if not entry.has_data:
            return self.fetch(key)
        data = entry.data
        if self._is_stale(entry):
            self._schedule_refetch(key)
        return data

    def peek(self, key):
        with self._lock:
            entry = self._entries.get(key)
            return entry.data if entry is not None and entry.has_data else None

    def fetch(self, key):
        """Load ``key`` now, store it and notify subscribers."""
        data = self._fetcher(key)
        self.set(key, data)
        return data

    def set(self, key, data):
        self._store(key, data)

    def _store(self, key, data, generation=None):
        entry = self._entry(key)
        with self._lock:
            if generation is not None and entry.generation != generation:
                return False
            entry.data = data
            entry.updated_at = self._clock()
            entry.stale = False
            entry.error = None
            subscribers = list(entry.subscribers)
        for callback in subscribers:
            callback(data)
        return True

    def subscribe(self, key, callback):
        """Register a mounted view. Returns a function that unsubscribes it."""
        entry = self._entry(key)
        with self._lock:
            entry.subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in entry.subscribers:
                    entry.subscribers.remove(callback)

        return unsubscribe

    def is_stale(self, key):
        with self._lock:
            entry = self._entries.get(key)
            return entry is None or self._is_stale(entry)

    def error(self, key):
        with self._lock:
            entry = self._entries.get(key)
            return entry.error if entry is not None else None

    def keys(self):
        with self._lock:
            return [key for key, entry in self._entries.items() if entry.has_data]

    def invalidate(self, *prefixes):
        """Mark every key under ``prefixes`` stale; refetch the subscribed ones.

        Returns the matched keys.
        """
        matched = []
        to_refetch = []
        with self._lock:
            for key, entry in self._entries.items():
                if any(key_matches(key, prefix) for prefix in prefixes):
                    entry.stale = True
                    entry.generation += 1
                    matched.append(key)
                    if entry.subscribers:
                        to_refetch.append(key)
        if matched:
            logger.debug(f"Invalidated {matched}")
        for key in to_refetch:
            self._schedule_refetch(key)
        return matched

    def remove(self, *prefixes):
        with self._lock:
            for key in list(self._entries):
                if any(key_matches(key, prefix) for prefix in prefixes):
                    del self._entries[key]

    def clear(self):
        with self._lock:
            self._entries.clear()

    def wait(self, timeout=None):
        """Block until background refetches, including follow-ups, are finished."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._lock:
                pending = [
                    entry.pending
                    for entry in self._entries.values()
                    if entry.pending is not None and not entry.pending.done()
                ]
            if not pending:
                return
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return
            wait(pending, timeout=remaining)

    def _schedule_refetch(self, key):
        entry = self._entry(key)
        with self._lock:
            if entry.pending is not None and not entry.pending.done():
                return entry.pending
            entry.pending = self._executor.submit(self._refetch, key, entry.generation)
            return entry.pending

    def _refetch(self, key, generation):
        entry = self._entry(key)
        try:
            data = self._fetcher(key)
        except ClientError as e:
            # Keep serving the last good value
            with self._lock:
                entry.error = e
            logger.warning(f"Background refresh of {key} failed: {e.user_message}")
            return None
        except Exception as e:
            with self._lock:
                entry.error = e
            logger.exception(f"Background refresh of {key} crashed")
            return None

        if self._store(key, data, generation):
            return data
        # Invalidated while the request was in flight; the response may predate the write
        logger.debug(f"Discarding refresh of {key}, invalidated meanwhile")
        with self._lock:
            entry.pending = self._executor.submit(self._refetch, key, entry.generation)
        return None
