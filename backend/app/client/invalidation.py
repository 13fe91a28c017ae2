"""
Client cache invalidation.

A broadcast event only says "something of this type changed". It never
carries data the cache trusts: the event type is looked up in a static
table, the matching cached queries are marked stale, and the data is
re-fetched from the REST API.

Query keys are ``(query name, scope id)`` pairs where the scope is either
the event's house or the current user.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, FrozenSet, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

QueryKey = Tuple[str, str]

HOUSE_SCOPE = "house"
USER_SCOPE = "user"

# event type -> (query name, scope) pairs to invalidate
INVALIDATION_TABLE: Dict[str, Tuple[Tuple[str, str], ...]] = {
    "task_update": (("tasks", HOUSE_SCOPE),),
    "device_update": (("devices", HOUSE_SCOPE),),
    "shopping_list_update": (("shopping-items", HOUSE_SCOPE),),
    "member_update": (("members", HOUSE_SCOPE), ("houses", USER_SCOPE)),
    "notification": (("notifications", USER_SCOPE),),
}


def invalidation_targets(event: Mapping[str, Any], user_id: str) -> FrozenSet[QueryKey]:
    """
    Query keys an event makes stale for ``user_id``.

    Pure: depends only on its arguments. Unknown event types and events
    missing the scope they need yield no keys.
    """
    targets = set()
    for query, scope in INVALIDATION_TABLE.get(event.get("type"), ()):
        scope_id = event.get("house_id") if scope == HOUSE_SCOPE else user_id
        if scope_id:
            targets.add((query, scope_id))
    return frozenset(targets)


@dataclass
class CacheEntry:
    data: Any
    fetched_at: float
    stale: bool = False


@dataclass
class QueryCache:
    """
    Fetched query results with staleness flags.

    Invalidation only flips the flag; cached data is replaced solely by
    ``store`` with a fresh REST response. Entries older than ``max_age``
    seconds count as stale too.
    """

    max_age: float = 300.0
    clock: Callable[[], float] = time.monotonic
    _entries: Dict[QueryKey, CacheEntry] = field(default_factory=dict)

    def store(self, key: QueryKey, data: Any) -> None:
        self._entries[key] = CacheEntry(data=data, fetched_at=self.clock())

    def get(self, key: QueryKey) -> Optional[CacheEntry]:
        return self._entries.get(key)

    def data(self, key: QueryKey) -> Any:
        entry = self._entries.get(key)
        return entry.data if entry else None

    def keys(self) -> List[QueryKey]:
        return list(self._entries)

    def is_stale(self, key: QueryKey) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return True
        return entry.stale or self.clock() - entry.fetched_at >= self.max_age

    def stale_keys(self) -> List[QueryKey]:
        return [key for key in self._entries if self.is_stale(key)]

    def invalidate(self, keys) -> int:
        """Mark the cached entries among ``keys`` stale; returns how many."""
        marked = 0
        for key in keys:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale:
                entry.stale = True
                marked += 1
        return marked

    def invalidate_all(self) -> int:
        return self.invalidate(list(self._entries))

    def apply_event(self, event: Mapping[str, Any], user_id: str) -> FrozenSet[QueryKey]:
        """Invalidate whatever ``event`` targets; returns the targeted keys."""
        targets = invalidation_targets(event, user_id)
        if targets:
            marked = self.invalidate(targets)
            logger.debug(f"{event.get('type')}/{event.get('action')}: {marked} cached entries marked stale")
        return targets
