# src/trajsim_core/cache/disk.py
"""
Persistent, content-addressable trajectory storage: one `.npz` file per key.

Each file holds the serialized record `{param, time, status, state}` and is named
`traj_<digest>.npz`. Writes go to a temporary file in the same directory and are
then moved into place with `os.replace`, so a reader sees either no entry or a
whole record; two racing writers of the same key leave the last complete record.
"""
import logging
import os
import tempfile
import threading
import zipfile
from pathlib import Path
from typing import Optional, Union

import numpy as np

from ..constants import CACHE_FILE_PREFIX, CACHE_FILE_SUFFIX
from ..data_structures import TrajectoryRecord
from .service import TrajectoryCache

logger = logging.getLogger(__name__)

_RECORD_FIELDS = ("param", "time", "status", "state")


class CorruptCacheEntryError(ValueError):
    """Raised internally when a cache file cannot be decoded into a trajectory record."""
    pass


def _read_record(path: Path) -> TrajectoryRecord:
    try:
        with np.load(path, allow_pickle=False) as data:
            missing = [f for f in _RECORD_FIELDS if f not in data.files]
            if missing:
                raise CorruptCacheEntryError(f"Cache file '{path.name}' lacks field(s) {missing}.")
            return TrajectoryRecord(
                time=data["time"],
                state=data["state"],
                parameters=data["param"],
                status=int(data["status"]),
            )
    except CorruptCacheEntryError:
        raise
    except (OSError, EOFError, KeyError, ValueError, zipfile.BadZipFile) as e:
        raise CorruptCacheEntryError(f"Cache file '{path.name}' is unreadable: {e}") from e


def _read_header(member) -> tuple:
    version = np.lib.format.read_magic(member)
    if version == (1, 0):
        shape, _, dtype = np.lib.format.read_array_header_1_0(member)
    else:
        shape, _, dtype = np.lib.format.read_array_header_2_0(member)
    return shape, dtype


def _inspect_record(path: Path) -> int:
    """
    Checks a cache file without paging in its arrays: every field must be present
    with a well-formed array header and consistent shapes. Returns the status.
    """
    try:
        with zipfile.ZipFile(path) as archive:
            headers = {}
            for name in archive.namelist():
                field = Path(name).stem
                if field in _RECORD_FIELDS:
                    with archive.open(name) as member:
                        headers[field] = _read_header(member)
            missing = [f for f in _RECORD_FIELDS if f not in headers]
            if missing:
                raise CorruptCacheEntryError(f"Cache file '{path.name}' lacks field(s) {missing}.")

            time_shape, state_shape = headers["time"][0], headers["state"][0]
            if len(time_shape) != 1 or len(state_shape) != 2 or state_shape[1] != time_shape[0]:
                raise CorruptCacheEntryError(
                    f"Cache file '{path.name}' holds a state of shape {state_shape} for time shape {time_shape}."
                )
            if headers["status"][0] != ():
                raise CorruptCacheEntryError(f"Cache file '{path.name}' holds a non-scalar status.")

            with archive.open("status.npy") as member:
                return int(np.lib.format.read_array(member, allow_pickle=False))
    except CorruptCacheEntryError:
        raise
    except (OSError, EOFError, KeyError, TypeError, ValueError, zipfile.BadZipFile) as e:
        raise CorruptCacheEntryError(f"Cache file '{path.name}' is unreadable: {e}") from e


class LazyTrajectoryRecord:
    """
    A read-only handle on a cached trajectory whose arrays are paged in from disk
    on first access. It satisfies the read contract of `TrajectoryRecord`.
    The status is read up front, when the handle is created.
    """

    def __init__(self, path: Path, status: Optional[int] = None):
        self._path = Path(path)
        self._status = _inspect_record(self._path) if status is None else int(status)
        self._record: Optional[TrajectoryRecord] = None
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def is_loaded(self) -> bool:
        return self._record is not None

    def materialize(self) -> TrajectoryRecord:
        """Reads the whole record from disk, once."""
        with self._lock:
            if self._record is None:
                logger.debug(f"Paging trajectory in from '{self._path.name}'.")
                self._record = _read_record(self._path)
            return self._record

    @property
    def time(self) -> np.ndarray:
        return self.materialize().time

    @property
    def state(self) -> np.ndarray:
        return self.materialize().state

    @property
    def parameters(self) -> np.ndarray:
        return self.materialize().parameters

    @property
    def status(self) -> int:
        return self._status

    @property
    def final_state(self) -> np.ndarray:
        return self.materialize().final_state

    @property
    def succeeded(self) -> bool:
        return self.status == 0

    def with_parameters(self, parameters: np.ndarray) -> TrajectoryRecord:
        return self.materialize().with_parameters(parameters)

    def equals(self, other) -> bool:
        return self.materialize().equals(other)

    def __getstate__(self):
        return {'_path': self._path, '_status': self._status, '_record': self._record}

    def __setstate__(self, state):
        self._path = state['_path']
        self._status = state['_status']
        self._record = state['_record']
        self._lock = threading.Lock()

    def __repr__(self):
        status = "loaded" if self.is_loaded else "not loaded"
        return f"LazyTrajectoryRecord('{self._path.name}', {status})"


class DiskTrajectoryCache(TrajectoryCache):
    """
    A persistent trajectory cache rooted at a directory.

    Args:
        directory: Where entries are stored. Created on first use.
        lazy_load: If True, `load` returns a `LazyTrajectoryRecord` instead of a
                   fully materialized record.
    """

    def __init__(self, directory: Union[str, Path], lazy_load: bool = False):
        super().__init__()
        self.directory = Path(directory)
        self.lazy_load = lazy_load
        logger.debug(f"DiskTrajectoryCache rooted at '{self.directory}' (lazy_load={lazy_load}).")

    def path_for(self, key: str) -> Path:
        return self.directory / f"{CACHE_FILE_PREFIX}{key}{CACHE_FILE_SUFFIX}"

    def exists(self, key: str) -> bool:
        return self.path_for(key).is_file()

    def _load(self, key: str) -> Optional[Union[TrajectoryRecord, LazyTrajectoryRecord]]:
        path = self.path_for(key)
        if not path.is_file():
            return None
        try:
            if self.lazy_load:
                return LazyTrajectoryRecord(path, status=_inspect_record(path))
            return _read_record(path)
        except (CorruptCacheEntryError, OSError, zipfile.BadZipFile) as e:
            logger.warning(f"Ignoring corrupt trajectory cache entry '{path.name}', it will be recomputed: {e}")
            return None

    def _store(self, key: str, record: TrajectoryRecord) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(key)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{target.stem}.", suffix=".tmp", dir=self.directory)
        try:
            with os.fdopen(fd, "wb") as f:
                np.savez(
                    f,
                    param=np.asarray(record.parameters, dtype=float),
                    time=np.asarray(record.time, dtype=float),
                    status=np.asarray(int(record.status)),
                    state=np.asarray(record.state, dtype=float),
                )
            os.replace(tmp_name, target)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Stored trajectory in '{target.name}'.")

    def invalidate(self, key: str) -> None:
        """Removes the entry for `key`, if any."""
        self.path_for(key).unlink(missing_ok=True)

    def clear(self) -> None:
        """Removes every trajectory entry from the cache directory."""
        if not self.directory.is_dir():
            return
        removed = 0
        for path in self.directory.glob(f"{CACHE_FILE_PREFIX}*{CACHE_FILE_SUFFIX}"):
            path.unlink(missing_ok=True)
            removed += 1
        logger.info(f"Cleared {removed} trajectory cache file(s) from '{self.directory}'.")
