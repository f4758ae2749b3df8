# tests/test_simulators.py
import numpy as np
import pytest

from trajsim_core import ParameterSet, SystemDefinition, TimeSpan, compute_trajectories
from trajsim_core.errors import FrameworkLogicError
from trajsim_core.simulation import (
    ExternalProcessSimulator, InputSignal, InputSignalError, ModelEngineSimulator,
    NativeOdeSimulator, PrerecordedTraces, TrajectorySimulationError,
)


def _decay(t, x, p):
    return -p[1] * x


@pytest.fixture
def decay_system():
    return SystemDefinition(
        name="decay",
        state_names=("x",),
        param_names=("x0", "k"),
        simulator=NativeOdeSimulator(_decay, method="RK45", rtol=1e-10, atol=1e-12),
        nominal_values=[1.0, 2.0],
    )


class TestNativeOdeSimulator:

    def test_explicit_span_is_reported_exactly(self, decay_system):
        span = TimeSpan([0.0, 0.25, 0.5, 1.0])
        out = decay_system.simulator.simulate(decay_system, span, np.array([2.0, 1.5]))

        assert out.status == 0
        np.testing.assert_array_equal(out.time, span.values)
        np.testing.assert_allclose(out.state[0], 2.0 * np.exp(-1.5 * span.values), rtol=1e-7)

    def test_interval_span_uses_solver_steps(self, decay_system):
        out = decay_system.simulator.simulate(decay_system, TimeSpan([0.0, 3.0]), np.array([1.0, 1.0]))

        assert out.time[0] == 0.0
        assert out.time[-1] == 3.0
        assert np.all(np.diff(out.time) > 0)
        np.testing.assert_allclose(out.state[0, -1], np.exp(-3.0), rtol=1e-6)

    def test_input_signal_switches_parameters(self, decay_system):
        span = TimeSpan([0.0, 0.5, 1.0])
        signal = InputSignal(params_idx=[1], time=[0.5], values=[[0.0]])
        out = decay_system.simulator.simulate(decay_system, span, np.array([1.0, 2.0]), signal)

        np.testing.assert_array_equal(out.time, span.values)
        np.testing.assert_allclose(out.state[0, 1], np.exp(-1.0), rtol=1e-7)
        np.testing.assert_allclose(out.state[0, 2], out.state[0, 1], rtol=1e-9)

    def test_interval_span_with_input_signal_has_no_repeated_times(self, decay_system):
        signal = InputSignal(params_idx=[1], time=[0.0, 1.0], values=[[1.0, 3.0]])
        out = decay_system.simulator.simulate(decay_system, TimeSpan([0.0, 2.0]), np.array([1.0, 1.0]), signal)

        assert np.all(np.diff(out.time) > 0)
        np.testing.assert_allclose(out.state[0, -1], np.exp(-1.0 - 3.0), rtol=1e-6)

    def test_callable_initial_state(self):
        system = SystemDefinition(
            name="decay2", state_names=("x",), param_names=("k",),
            simulator=NativeOdeSimulator(lambda t, x, p: -p[0] * x, initial_state=lambda p: [4.0]),
        )
        out = system.simulator.simulate(system, TimeSpan([0.0, 1.0, 2.0]), np.array([0.0]))
        np.testing.assert_allclose(out.state[0], [4.0, 4.0, 4.0])

    def test_missing_initial_state_is_a_simulation_error(self):
        system = SystemDefinition(
            name="osc", state_names=("x", "v"), param_names=("k",),
            simulator=NativeOdeSimulator(_decay),
        )
        with pytest.raises(TrajectorySimulationError):
            system.simulator.simulate(system, TimeSpan([0.0, 1.0]), np.array([1.0]))

    def test_end_to_end_through_the_facade(self, decay_system):
        ps = ParameterSet.from_system(decay_system).add_points(np.array([[1.0, 2.0], [1.0, 0.5]]))
        result = compute_trajectories(decay_system, ps, time_span=[0.0, 1.0, 2.0])

        assert result.num_trajectories == 2
        np.testing.assert_array_equal(result.traj_ref, [0, 0, 1])
        np.testing.assert_allclose(result.final_state[1], [np.exp(-1.0)], rtol=1e-7)


class _Engine:
    def __init__(self):
        self.inputs = []

    def run(self, time, parameters, input_signal):
        self.inputs.append(input_signal)
        return time, np.vstack([parameters[0] * np.ones_like(time)])


class TestDelegatingSimulators:

    def test_external_callable_in_row_per_sample_layout(self, system_factory):
        def sim_fn(time, params, input_signal):
            return time, np.column_stack([time, time * 2.0]), 0

        system = system_factory(ExternalProcessSimulator(sim_fn))
        out = system.simulator.simulate(system, TimeSpan([0.0, 1.0, 2.0]), np.array([1.0, 2.0]))

        assert out.state.shape == (2, 3)
        np.testing.assert_array_equal(out.state[1], [0.0, 2.0, 4.0])

    def test_external_callable_status_and_bad_output(self, system_factory):
        system = system_factory(ExternalProcessSimulator(lambda t, p, u: (t, np.zeros((2, t.size)), 7)))
        assert system.simulator.simulate(system, TimeSpan([0.0, 1.0]), np.zeros(2)).status == 7

        broken = system_factory(ExternalProcessSimulator(lambda t, p, u: np.zeros(3)))
        with pytest.raises(TrajectorySimulationError):
            broken.simulator.simulate(broken, TimeSpan([0.0, 1.0]), np.zeros(2))

    def test_model_engine_with_input_generator(self):
        engine = _Engine()
        generator = lambda system, span, p: {"params_idx": [0], "time": [span.start], "values": [[p[0]]]}
        system = SystemDefinition(
            name="engine", state_names=("x",), param_names=("u",),
            simulator=ModelEngineSimulator(engine, input_generator=generator),
        )
        out = system.simulator.simulate(system, TimeSpan([0.0, 1.0]), np.array([3.0]))

        np.testing.assert_array_equal(out.state, [[3.0, 3.0]])
        assert isinstance(engine.inputs[0], InputSignal)

    def test_model_engine_requires_run(self):
        with pytest.raises(TypeError):
            ModelEngineSimulator(object())

    def test_prerecorded_traces_cannot_simulate(self, system_factory):
        system = system_factory(PrerecordedTraces())
        with pytest.raises(FrameworkLogicError):
            system.simulator.simulate(system, TimeSpan([0.0, 1.0]), np.zeros(2))


class TestInputSignalValidation:

    def test_time_must_match_value_columns(self):
        with pytest.raises(InputSignalError) as exc_info:
            InputSignal(params_idx=[0], time=[0.0, 1.0], values=[[1.0, 2.0, 3.0]]).validate()
        assert exc_info.value.field_name == "time"

    def test_time_must_increase(self):
        with pytest.raises(InputSignalError, match="strictly increasing"):
            InputSignal(params_idx=[0], time=[1.0, 0.0], values=[[1.0, 2.0]]).validate()

    def test_indices_must_exist(self):
        with pytest.raises(InputSignalError, match="outside"):
            InputSignal(params_idx=[5], time=[0.0], values=[[1.0]]).validate(dim_p=2)

    def test_missing_field(self):
        with pytest.raises(InputSignalError) as exc_info:
            InputSignal.from_mapping({"params_idx": [0], "time": [0.0]})
        assert exc_info.value.field_name == "values"

    def test_parameters_at(self):
        signal = InputSignal(params_idx=[1], time=[1.0, 2.0], values=[[10.0, 20.0]])
        base = np.array([1.0, 2.0])

        np.testing.assert_array_equal(signal.parameters_at(base, 0.5), [1.0, 2.0])
        np.testing.assert_array_equal(signal.parameters_at(base, 1.0), [1.0, 10.0])
        np.testing.assert_array_equal(signal.parameters_at(base, 5.0), [1.0, 20.0])
