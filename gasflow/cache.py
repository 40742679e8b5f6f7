import asyncio
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional, Tuple


@dataclass
class CacheEntry:
    value: Any
    expires_at: float


class TTLCache:
    """In-memory TTL cache shared by concurrent requests.

    Entries only leave the cache through TTL expiry or LRU eviction. Reads and
    writes are serialized with an asyncio lock; ``get_or_load`` additionally
    collapses concurrent misses for the same key into a single loader call.
    """

    def __init__(
        self,
        default_ttl: float = 300,
        max_size: int = 1000,
        name: str = "cache",
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.default_ttl = default_ttl
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[Hashable, CacheEntry] = {}
        self._access_order: List[Hashable] = []
        self._inflight: Dict[Hashable, asyncio.Future] = {}
        self._lock = asyncio.Lock()

    def _lookup(self, key: Hashable) -> Tuple[bool, Any]:
        entry = self._cache.get(key)
        if entry is None:
            return False, None

        if self._clock() > entry.expires_at:
            del self._cache[key]
            if key in self._access_order:
                self._access_order.remove(key)
            return False, None

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)
        return True, entry.value

    def _store(self, key: Hashable, value: Any, ttl: Optional[float]) -> None:
        ttl = self.default_ttl if ttl is None else ttl
        self._cache[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)

        if key in self._access_order:
            self._access_order.remove(key)
        self._access_order.append(key)

        while len(self._cache) > self.max_size:
            oldest_key = self._access_order.pop(0)
            self._cache.pop(oldest_key, None)

    async def get(self, key: Hashable) -> Optional[Any]:
        async with self._lock:
            _, value = self._lookup(key)
            return value

    async def contains(self, key: Hashable) -> bool:
        async with self._lock:
            hit, _ = self._lookup(key)
            return hit

    async def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> None:
        async with self._lock:
            self._store(key, value, ttl)

    async def get_or_load(
        self,
        key: Hashable,
        loader: Callable[[], Awaitable[Any]],
        ttl: Optional[float] = None,
    ) -> Any:
        """Return the cached value or run ``loader`` once for all concurrent callers.

        Loader failures propagate to every waiter and nothing is cached.
        """
        async with self._lock:
            hit, value = self._lookup(key)
            if hit:
                return value

            pending = self._inflight.get(key)
            owner = pending is None
            if owner:
                pending = asyncio.get_running_loop().create_future()
                self._inflight[key] = pending

        if not owner:
            return await asyncio.shield(pending)

        try:
            value = await loader()
        except asyncio.CancelledError:
            self._inflight.pop(key, None)
            pending.cancel()
            raise
        except Exception as exc:
            async with self._lock:
                self._inflight.pop(key, None)
            if not pending.done():
                pending.set_exception(exc)
                # Mark retrieved so an unobserved failure is not reported at GC
                pending.exception()
            raise

        async with self._lock:
            self._store(key, value, ttl)
            self._inflight.pop(key, None)
        if not pending.done():
            pending.set_result(value)
        return value

    async def clear(self) -> None:
        async with self._lock:
            self._cache.clear()
            self._access_order.clear()

    def size(self) -> int:
        return len(self._cache)
