# src/trajsim_core/cache/service.py
"""
Provides the trajectory cache interface and its in-process implementations.

The cache is an explicit handle passed to the scheduler, never looked up from
ambient state. It is a correctness cache, not a capacity-bounded one: entries are
write-once and a present entry is authoritative until manually invalidated.
Caching is transparent: a computation returns identical results with any of the
implementations below, only timing differs.
"""
import logging
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Union, TYPE_CHECKING

from ..data_structures import TrajectoryRecord

if TYPE_CHECKING:
    from .disk import LazyTrajectoryRecord

logger = logging.getLogger(__name__)


class TrajectoryCache(ABC):
    """
    The contract shared by every trajectory cache.

    `load` never raises for an unusable entry: a corrupt or unreadable entry is
    reported as a miss (None) so the trajectory is recomputed. `store` never
    raises either: it returns False on failure and the freshly computed record is
    still used by the caller.
    """

    def __init__(self):
        self._stats_lock = threading.Lock()
        self.clear_stats()

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True if an entry for `key` is present."""
        raise NotImplementedError

    @abstractmethod
    def _load(self, key: str) -> Optional[TrajectoryRecord]:
        raise NotImplementedError

    @abstractmethod
    def _store(self, key: str, record: TrajectoryRecord) -> None:
        raise NotImplementedError

    def load(self, key: str) -> Optional[Union[TrajectoryRecord, "LazyTrajectoryRecord"]]:
        """Returns the stored record for `key`, or None on a miss or an unusable entry."""
        record = self._load(key)
        self._count('hits' if record is not None else 'misses')
        if record is not None:
            logger.debug(f"Trajectory cache HIT for key {key[:16]}...")
        else:
            logger.debug(f"Trajectory cache MISS for key {key[:16]}...")
        return record

    def store(self, key: str, record: TrajectoryRecord) -> bool:
        """Stores `record` under `key`. Returns False, after logging, if the write failed."""
        try:
            self._store(key, record)
        except (OSError, ValueError, TypeError) as e:
            self._count('write_errors')
            logger.warning(f"Failed to cache trajectory for key {key[:16]}...: {e}")
            return False
        self._count('stores')
        return True

    def get_stats(self) -> Dict[str, int]:
        """Returns a copy of the hit/miss/store statistics."""
        with self._stats_lock:
            return dict(self._stats)

    def clear_stats(self):
        """Resets the statistics of this cache instance."""
        with self._stats_lock:
            self._stats = {'hits': 0, 'misses': 0, 'stores': 0, 'write_errors': 0}

    def _count(self, name: str):
        with self._stats_lock:
            self._stats[name] += 1

    # Locks cannot cross process boundaries; each worker process gets its own.
    def __getstate__(self):
        state = self.__dict__.copy()
        state.pop('_stats_lock', None)
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self._stats_lock = threading.Lock()


class NullTrajectoryCache(TrajectoryCache):
    """The cache used when no persistent cache is configured: always misses, stores nothing."""

    def exists(self, key: str) -> bool:
        return False

    def _load(self, key: str) -> Optional[TrajectoryRecord]:
        return None

    def _store(self, key: str, record: TrajectoryRecord) -> None:
        return None


class MemoryTrajectoryCache(TrajectoryCache):
    """
    An in-process cache backed by a dictionary. Safe to share between worker
    threads; a process pool gives every worker its own copy, so entries stored by
    workers are not visible to the caller.
    """

    def __init__(self):
        super().__init__()
        self._entries: Dict[str, TrajectoryRecord] = {}
        self._entries_lock = threading.Lock()
        logger.debug("MemoryTrajectoryCache instance created.")

    def exists(self, key: str) -> bool:
        with self._entries_lock:
            return key in self._entries

    def _load(self, key: str) -> Optional[TrajectoryRecord]:
        with self._entries_lock:
            return self._entries.get(key)

    def _store(self, key: str, record: TrajectoryRecord) -> None:
        with self._entries_lock:
            if key in self._entries:
                logger.debug(f"Trajectory cache key {key[:16]}... already present. Last write wins.")
            self._entries[key] = record

    def invalidate(self, key: str) -> None:
        with self._entries_lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Explicitly drops every entry, forcing recomputation."""
        with self._entries_lock:
            self._entries.clear()
        logger.info("Cleared the in-memory trajectory cache.")

    def __len__(self):
        with self._entries_lock:
            return len(self._entries)

    def __getstate__(self):
        state = super().__getstate__()
        state.pop('_entries_lock', None)
        return state

    def __setstate__(self, state):
        super().__setstate__(state)
        self._entries_lock = threading.Lock()
