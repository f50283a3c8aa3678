"""
Per-item locks for ledger and recipe mutations.

Writers that touch a supply's ledger, a component's batches or a
component's recipe hold the lock keyed by ``(item_type, item_id)``.
Multi-key acquisition always happens in sorted key order so two
production runs over overlapping closures cannot deadlock.

Recipe edits also hold ``RECIPE_GRAPH_KEY``: cycle checks of concurrent
edits run one after another, each against the graph the previous edit
committed.

Locks are re-entrant: a production run that recursively produces a
sub-component already holds that sub-component's lock and re-acquires it
without blocking.

Usage:
    from src.services.locking import hold, supply_key, component_key

    with hold([supply_key(3), component_key(7)]):
        ...  # read-check-append under the locks
"""

import logging
import threading
import time
from contextlib import contextmanager
from typing import Dict, Hashable, Iterable, List, Optional, Tuple

from ..models.enums import ItemType
from ..utils.config import get_config
from .exceptions import LockTimeoutError

logger = logging.getLogger(__name__)

LockKey = Tuple[str, int]


def supply_key(supply_id: int) -> LockKey:
    return (ItemType.SUPPLY.value, supply_id)


def component_key(component_id: int) -> LockKey:
    return (ItemType.COMPONENT.value, component_id)


# Held by every recipe edit for its whole check-and-write
RECIPE_GRAPH_KEY: LockKey = ("recipe_graph", 0)


class KeyedLockRegistry:
    """
    Registry of ``threading.RLock`` objects created on demand per key.

    Locks are never removed; the set of keys is bounded by the catalog.
    """

    def __init__(self):
        self._locks: Dict[Hashable, threading.RLock] = {}
        self._guard = threading.Lock()

    def get_lock(self, key: Hashable) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, keys: Iterable[Hashable], timeout: Optional[float] = None):
        """
        Acquire every lock in ``keys`` (sorted, de-duplicated) for the block.

        Args:
            keys: Lock keys to acquire
            timeout: Overall seconds to wait (defaults to config lock_timeout)

        Yields:
            The ordered list of keys held

        Raises:
            LockTimeoutError: If the locks cannot all be acquired in time.
                Locks acquired so far are released first.
        """
        ordered: List[Hashable] = sorted(set(keys))
        if timeout is None:
            timeout = get_config().lock_timeout

        deadline = time.monotonic() + timeout
        acquired: List[threading.RLock] = []
        try:
            for key in ordered:
                remaining = max(0.0, deadline - time.monotonic())
                lock = self.get_lock(key)
                if not lock.acquire(timeout=remaining):
                    logger.warning(f"Lock timeout after {timeout}s on {key}")
                    raise LockTimeoutError(ordered, timeout)
                acquired.append(lock)
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()


_registry = KeyedLockRegistry()


def get_registry() -> KeyedLockRegistry:
    """Get the process-wide lock registry."""
    return _registry


def hold(keys: Iterable[Hashable], timeout: Optional[float] = None):
    """Acquire keys on the process-wide registry (see KeyedLockRegistry.hold)."""
    return _registry.hold(keys, timeout=timeout)
