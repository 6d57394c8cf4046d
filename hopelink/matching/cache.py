# hopelink/matching/cache.py
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Hashable, Optional

class TTLCache:
    """
    Time-bounded memo for values that are cheap to recompute but requested
    over and over inside one ranking burst (pairwise distances, reliability).

    Keys are plain tuples. Entries are (value, stored_at); a hit requires
    now - stored_at < ttl. There is no locking: concurrent writers for the
    same key just overwrite each other with an equivalent value.
    """

    def __init__(self, ttl_seconds: float, clock: Callable[[], float] = time.monotonic,
                 max_entries: Optional[int] = None):
        self.ttl = float(ttl_seconds)
        self.clock = clock
        self.max_entries = max_entries
        self._data: "OrderedDict[Hashable, tuple]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._data)

    def __contains__(self, key: Hashable) -> bool:
        return self._lookup(key)[0]

    def _lookup(self, key: Hashable):
        entry = self._data.get(key)
        if entry is None:
            return False, None
        value, stored_at = entry
        if self.clock() - stored_at < self.ttl:
            return True, value
        del self._data[key]
        return False, None

    def get(self, key: Hashable, default: Any = None) -> Any:
        hit, value = self._lookup(key)
        return value if hit else default

    def set(self, key: Hashable, value: Any) -> None:
        self._data.pop(key, None)
        self._data[key] = (value, self.clock())
        if self.max_entries is not None:
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def get_or_compute(self, key: Hashable, compute: Callable[[], Any]) -> Any:
        hit, value = self._lookup(key)
        if hit:
            return value
        value = compute()
        self.set(key, value)
        return value

    async def aget_or_compute(self, key: Hashable, compute: Callable[[], Awaitable[Any]]) -> Any:
        hit, value = self._lookup(key)
        if hit:
            return value
        value = await compute()
        self.set(key, value)
        return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        if key is None:
            self._data.clear()
        else:
            self._data.pop(key, None)
