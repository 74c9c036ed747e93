"""
cache/store.py -- In-memory query cache for portal reads on the client side.

Avoids redundant API calls: once a path has been fetched, later reads are
answered from memory. Entries never go stale on their own (no TTL, no
refetch on focus or interval); they leave the cache only through
invalidate() or clear().

Concurrent get() calls for the same key share one in-flight fetch. Every key
carries a generation counter; invalidate() and clear() bump it, and a fetch
that settles under an older generation does not write its result.

Usage:
    cache = QueryCache(client.get)
    me = await cache.get("/api/auth/me")           # fetched once
    me = await cache.get("/api/auth", "me")        # same key, cached
    cache.invalidate("/api/homework")              # drops every homework entry
"""

import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Optional, Union

from client.http import ApiError
from core.errors import ErrorKind

logger = logging.getLogger("lukamath.cache")

Key = tuple[str, ...]
Fetch = Callable[[str], Union[Any, Awaitable[Any]]]

_ON_401 = ("throw", "return_null")
_UNAUTHORIZED = (ErrorKind.MISSING_TOKEN, ErrorKind.INVALID_TOKEN, ErrorKind.INVALID_CREDENTIALS)
_MISSING = object()


def cache_key(*parts: str) -> Key:
    """Normalize path parts into a tuple of non-empty segments.

    cache_key("/api/homework/42") == cache_key("/api/homework", "42")
    """
    segments: list[str] = []
    for part in parts:
        segments.extend(s for s in str(part).split("/") if s)
    return tuple(segments)


def _path(key: Key) -> str:
    return "/" + "/".join(key)


def _is_unauthorized(exc: ApiError) -> bool:
    return exc.status == 401 or exc.kind in _UNAUTHORIZED


def _retrieve_exception(task: asyncio.Task) -> None:
    # Marks the error as seen even when every waiter was cancelled.
    if not task.cancelled():
        task.exception()


class QueryCache:
    def __init__(self, fetch: Fetch, on_401: str = "throw") -> None:
        if on_401 not in _ON_401:
            raise ValueError(f"on_401 must be one of {_ON_401}, got {on_401!r}")
        self._fetch = fetch
        self.on_401 = on_401
        self._data: dict[Key, Any] = {}
        self._inflight: dict[Key, asyncio.Task] = {}
        self._generation: dict[Key, int] = {}

    async def _call(self, key: Key) -> Any:
        if inspect.iscoroutinefunction(self._fetch):
            return await self._fetch(_path(key))
        # requests is blocking; keep it off the event loop.
        return await asyncio.to_thread(self._fetch, _path(key))

    async def _run(self, key: Key, generation: int) -> Any:
        try:
            value = await self._call(key)
        finally:
            if self._inflight.get(key) is asyncio.current_task():
                del self._inflight[key]
        if self._generation.get(key, 0) == generation:
            self._data[key] = value
        else:
            logger.debug("Discarding superseded result for %s", _path(key))
        return value

    async def get(self, *parts: str, on_401: Optional[str] = None) -> Any:
        """Return the cached value for the key, fetching it once if absent.

        on_401 overrides the cache-wide policy for this call: "throw" lets the
        ApiError propagate, "return_null" caches and returns None instead.
        Any other error propagates and is never cached.
        """
        policy = on_401 or self.on_401
        if policy not in _ON_401:
            raise ValueError(f"on_401 must be one of {_ON_401}, got {policy!r}")
        key = cache_key(*parts)
        if key in self._data:
            return self._data[key]

        generation = self._generation.get(key, 0)
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, generation))
            task.add_done_callback(_retrieve_exception)
            self._inflight[key] = task

        try:
            # shield: one cancelled waiter must not cancel the shared fetch.
            return await asyncio.shield(task)
        except ApiError as exc:
            if policy == "return_null" and _is_unauthorized(exc):
                if self._generation.get(key, 0) == generation:
                    self._data[key] = None
                return None
            raise

    def peek(self, *parts: str) -> Any:
        """Cached value without fetching; None when absent."""
        return self._data.get(cache_key(*parts))

    def __contains__(self, parts: Union[str, Key]) -> bool:
        if isinstance(parts, str):
            return cache_key(parts) in self._data
        return cache_key(*parts) in self._data

    def set(self, *parts_and_value: Any) -> None:
        """set(*parts, value): populate an entry by hand, e.g. after a mutation."""
        if len(parts_and_value) < 2:
            raise TypeError("set() needs at least one key part and a value")
        *parts, value = parts_and_value
        key = cache_key(*parts)
        # A fetch still in flight for this key is older than this value.
        self._bump(key)
        self._data[key] = value

    def _bump(self, key: Key) -> None:
        self._generation[key] = self._generation.get(key, 0) + 1
        self._inflight.pop(key, None)

    def invalidate(self, *parts: str) -> int:
        """Drop every entry whose key starts with the given prefix.

        Returns the number of cached entries removed. In-flight fetches under
        the prefix are superseded and will not write their results.
        """
        prefix = cache_key(*parts)
        n = len(prefix)
        affected = {k for k in (*self._data, *self._inflight) if k[:n] == prefix}
        removed = 0
        for key in affected:
            self._bump(key)
            if self._data.pop(key, _MISSING) is not _MISSING:
                removed += 1
        logger.debug("Invalidated %d entries under %s", removed, _path(prefix))
        return removed

    def clear(self) -> None:
        """Drop everything; used on logout."""
        for key in {*self._data, *self._inflight}:
            self._bump(key)
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)
