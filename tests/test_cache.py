# tests/test_cache.py
import pickle
import zipfile

import numpy as np
import pytest

from trajsim_core.cache import (
    DiskTrajectoryCache, LazyTrajectoryRecord, MemoryTrajectoryCache, NullTrajectoryCache,
    create_trajectory_key,
)
from trajsim_core.data_structures import TrajectoryRecord
from trajsim_core.parameters import DimensionMismatchError
from trajsim_core.simulation import InputSignal


@pytest.fixture
def system(system_factory):
    return system_factory()


@pytest.fixture
def record():
    t = np.linspace(0.0, 1.0, 5)
    return TrajectoryRecord(time=t, state=np.vstack([t, t ** 2]), parameters=[1.0, 2.0], status=0)


class TestTrajectoryKeys:

    def test_key_is_deterministic(self, system):
        k1 = create_trajectory_key(system, [1.0, 2.0], [0.0, 1.0])
        k2 = create_trajectory_key(system, np.array([1.0, 2.0]), np.array([0.0, 1.0]))
        assert k1 == k2
        assert len(k1) == 64

    def test_key_depends_on_every_input(self, system, system_factory):
        base = create_trajectory_key(system, [1.0, 2.0], [0.0, 1.0])
        other_model = system_factory(name="other")
        signal = InputSignal(params_idx=[1], time=[0.5], values=[[3.0]])

        assert create_trajectory_key(system, [1.0, 2.0 + 4.440892098500626e-16], [0.0, 1.0]) != base
        assert create_trajectory_key(system, [1.0, 2.0], [0.0, 2.0]) != base
        assert create_trajectory_key(other_model, [1.0, 2.0], [0.0, 1.0]) != base
        assert create_trajectory_key(system, [1.0, 2.0], [0.0, 1.0], signal) != base

    def test_negative_zero_has_its_own_key(self, system):
        assert create_trajectory_key(system, [0.0, 1.0], 1.0) != create_trajectory_key(system, [-0.0, 1.0], 1.0)

    def test_wrong_dimension_is_rejected(self, system):
        with pytest.raises(DimensionMismatchError):
            create_trajectory_key(system, [1.0], [0.0, 1.0])


class TestInProcessCaches:

    def test_null_cache_always_misses(self, record):
        cache = NullTrajectoryCache()
        assert cache.store("k", record)
        assert cache.load("k") is None
        assert cache.get_stats()["misses"] == 1

    def test_memory_cache_round_trip_and_stats(self, record):
        cache = MemoryTrajectoryCache()
        assert cache.load("k") is None
        cache.store("k", record)

        assert cache.load("k") is record
        assert cache.exists("k")
        assert cache.get_stats() == {"hits": 1, "misses": 1, "stores": 1, "write_errors": 0}

    def test_memory_cache_invalidate_and_clear(self, record):
        cache = MemoryTrajectoryCache()
        cache.store("a", record)
        cache.store("b", record)
        cache.invalidate("a")
        assert not cache.exists("a")
        cache.clear()
        assert len(cache) == 0

    def test_memory_cache_is_picklable(self, record):
        cache = MemoryTrajectoryCache()
        cache.store("k", record)
        clone = pickle.loads(pickle.dumps(cache))
        assert clone.load("k").equals(record)


class TestDiskTrajectoryCache:

    def test_round_trip_is_bit_identical(self, tmp_path, record):
        cache = DiskTrajectoryCache(tmp_path / "cache")
        assert cache.store("abc", record)

        assert cache.path_for("abc").name == "traj_abc.npz"
        loaded = cache.load("abc")
        assert isinstance(loaded, TrajectoryRecord)
        assert loaded.equals(record)

    def test_failure_status_is_persisted(self, tmp_path):
        failed = TrajectoryRecord(time=[0.0, 1.0], state=[[np.nan, np.nan]], parameters=[1.0], status=-1)
        cache = DiskTrajectoryCache(tmp_path)
        cache.store("f", failed)

        loaded = cache.load("f")
        assert loaded.status == -1
        assert not loaded.succeeded

    def test_lazy_load_defers_reading(self, tmp_path, record):
        DiskTrajectoryCache(tmp_path).store("abc", record)
        lazy = DiskTrajectoryCache(tmp_path, lazy_load=True).load("abc")

        assert isinstance(lazy, LazyTrajectoryRecord)
        assert lazy.succeeded
        assert not lazy.is_loaded
        np.testing.assert_array_equal(lazy.state, record.state)
        assert lazy.is_loaded
        assert record.equals(lazy)

    def test_corrupt_entry_is_a_miss(self, tmp_path, record):
        cache = DiskTrajectoryCache(tmp_path)
        cache.store("abc", record)
        cache.path_for("abc").write_bytes(b"not an npz archive")

        assert cache.load("abc") is None
        assert cache.get_stats()["misses"] == 1

    def test_lazy_load_rejects_corrupt_members(self, tmp_path, record):
        cache = DiskTrajectoryCache(tmp_path, lazy_load=True)
        cache.store("abc", record)
        path = cache.path_for("abc")
        with zipfile.ZipFile(path) as archive:
            names = archive.namelist()
        with zipfile.ZipFile(path, "w") as archive:
            for name in names:
                archive.writestr(name, b"garbage")

        assert cache.load("abc") is None
        assert cache.get_stats()["misses"] == 1

    def test_lazy_load_rejects_inconsistent_shapes(self, tmp_path):
        cache = DiskTrajectoryCache(tmp_path, lazy_load=True)
        np.savez(cache.path_for("abc"), param=np.array([1.0, 2.0]), time=np.arange(3.0),
                 status=np.asarray(0), state=np.zeros((2, 4)))

        assert cache.load("abc") is None

    def test_lazy_handle_knows_its_status_without_paging_in(self, tmp_path):
        failed = TrajectoryRecord(time=[0.0, 1.0], state=[[np.nan, np.nan]], parameters=[1.0], status=-1)
        cache = DiskTrajectoryCache(tmp_path, lazy_load=True)
        cache.store("f", failed)

        loaded = cache.load("f")
        assert loaded.status == -1
        assert not loaded.is_loaded

    def test_write_failure_is_reported_not_raised(self, tmp_path, record):
        blocker = tmp_path / "blocker"
        blocker.write_text("a file where the cache directory should be")
        cache = DiskTrajectoryCache(blocker / "cache")

        assert cache.store("abc", record) is False
        assert cache.get_stats()["write_errors"] == 1

    def test_last_write_wins(self, tmp_path, record):
        cache = DiskTrajectoryCache(tmp_path)
        cache.store("k", record)
        newer = record.with_parameters([5.0, 6.0])
        cache.store("k", newer)

        assert cache.load("k").equals(newer)
        assert [p.name for p in tmp_path.iterdir()] == ["traj_k.npz"]

    def test_invalidate_and_clear(self, tmp_path, record):
        cache = DiskTrajectoryCache(tmp_path)
        cache.store("a", record)
        cache.store("b", record)

        cache.invalidate("a")
        assert not cache.exists("a")
        cache.clear()
        assert not cache.exists("b")
