# tests/conftest.py
import threading

import numpy as np
import pytest

from trajsim_core import SystemDefinition, MemoryTrajectoryCache, SchedulerConfig
from trajsim_core.simulation import ModelSimulator, SimulatorOutput


class CountingSimulator(ModelSimulator):
    """
    A deterministic, closed-form simulator that records every call.

    For parameters (a, b): x(t) = a + b * t and y(t) = a * b, sampled on the
    explicit time span, or on 11 evenly spaced times for an interval span.
    """

    def __init__(self, fail_when=None, status_when=None):
        self.fail_when = fail_when
        self.status_when = status_when
        self.calls = 0
        self.seen = []
        self._lock = threading.Lock()

    def simulate(self, system, time_span, parameters, input_signal=None):
        with self._lock:
            self.calls += 1
            self.seen.append(tuple(float(p) for p in parameters))
        if self.fail_when is not None and self.fail_when(parameters):
            raise RuntimeError(f"model diverged at {list(parameters)}")
        a, b = float(parameters[0]), float(parameters[1])
        if time_span.is_interval:
            t = np.linspace(time_span.start, time_span.stop, 11)
        else:
            t = np.array(time_span.values)
        state = np.vstack([a + b * t, np.full(t.size, a * b)])
        status = 0
        if self.status_when is not None and self.status_when(parameters):
            status = 3
        return SimulatorOutput(time=t, state=state, status=status)


def make_system(simulator, **kwargs):
    defaults = dict(
        name="linear",
        state_names=("x", "y"),
        param_names=("a", "b"),
        simulator=simulator,
        nominal_values=np.array([1.0, 2.0]),
        time_span=[0.0, 1.0],
    )
    defaults.update(kwargs)
    return SystemDefinition(**defaults)


@pytest.fixture
def counting_simulator():
    return CountingSimulator()


@pytest.fixture
def linear_system(counting_simulator):
    return make_system(counting_simulator)


@pytest.fixture
def memory_cache():
    return MemoryTrajectoryCache()


@pytest.fixture
def quiet_config():
    return SchedulerConfig(verbose=False)


@pytest.fixture
def system_factory():
    """Builds a linear system around a fresh `CountingSimulator` unless one is given."""
    def factory(simulator=None, **kwargs):
        return make_system(simulator if simulator is not None else CountingSimulator(), **kwargs)
    return factory


@pytest.fixture
def simulator_factory():
    return CountingSimulator


@pytest.fixture
def assert_consistent():
    """
    Checks the reference invariants of a parameter set: every referenced point
    matches its trajectory's parameters bit for bit, every unreferenced point is
    covered by a pending point, and pending vectors are pairwise distinct.
    """
    def check(ps):
        sim = ps.sim_points
        for i, ref in enumerate(ps.traj_ref.tolist()):
            if ref >= 0:
                assert np.asarray(ps.trajectories[ref].parameters).tobytes() == sim[i].tobytes(), \
                    f"point {i} does not match trajectory {ref}"

        pending = [sim[j].tobytes() for j in ps.to_compute]
        assert len(set(pending)) == len(pending), f"to_compute {ps.to_compute} repeats a vector"
        for i, ref in enumerate(ps.traj_ref.tolist()):
            if ref < 0:
                assert sim[i].tobytes() in pending, f"point {i} has no trajectory and is not pending"
    return check
