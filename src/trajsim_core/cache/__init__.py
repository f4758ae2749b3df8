"""
Exposes the public interface of the cache package.
"""
from .service import TrajectoryCache, NullTrajectoryCache, MemoryTrajectoryCache
from .disk import DiskTrajectoryCache, LazyTrajectoryRecord
from .keys import create_trajectory_key, canonical_vector

__all__ = [
    "TrajectoryCache",
    "NullTrajectoryCache",
    "MemoryTrajectoryCache",
    "DiskTrajectoryCache",
    "LazyTrajectoryRecord",
    "create_trajectory_key",
    "canonical_vector",
]
