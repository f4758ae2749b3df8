# tests/test_outputs.py
import numpy as np
import pytest

from trajsim_core.simulation import OutputGenerator, OutputSignalError, compose_outputs


def _sum_rows(t, x, p):
    return x.sum(axis=0) + p[0]


def _double(t, x, p):
    return 2.0 * x


def _downsample(t, x, p):
    new_t = t[::2]
    return new_t, np.vstack([np.interp(new_t, t, x[0])])


def _wrong_shape(t, x, p):
    return np.zeros((3, t.size))


@pytest.fixture
def output_system(system_factory):
    return system_factory(output_names=("s", "d"))


class TestComposeOutputs:

    def test_raw_state_is_kept_and_outputs_appended(self, output_system):
        t = np.linspace(0.0, 1.0, 5)
        state = np.vstack([t, 1.0 - t])
        gens = (OutputGenerator(("x", "y"), ("b",), ("s",), _sum_rows),)

        new_t, full = compose_outputs(output_system, t, state, np.array([1.0, 0.5]), gens)

        np.testing.assert_array_equal(new_t, t)
        np.testing.assert_array_equal(full[:2], state)
        np.testing.assert_allclose(full[2], np.full(5, 1.5))
        assert np.all(np.isnan(full[3]))

    def test_generators_run_in_order_and_see_earlier_outputs(self, output_system):
        t = np.linspace(0.0, 1.0, 3)
        state = np.vstack([t, t])
        gens = (
            OutputGenerator(("x", "y"), ("a",), ("s",), _sum_rows),
            OutputGenerator(("s",), (), ("d",), _double),
        )
        _, full = compose_outputs(output_system, t, state, np.array([0.0, 0.0]), gens)

        np.testing.assert_allclose(full[3], 2.0 * full[2])

    def test_resampling_interpolates_existing_rows(self, output_system):
        t = np.linspace(0.0, 1.0, 5)
        state = np.vstack([t, 2.0 * t])
        gens = (OutputGenerator(("x",), (), ("s",), _downsample),)

        new_t, full = compose_outputs(output_system, t, state, np.array([0.0, 0.0]), gens)

        np.testing.assert_array_equal(new_t, [0.0, 0.5, 1.0])
        np.testing.assert_allclose(full[1], [0.0, 1.0, 2.0])
        np.testing.assert_allclose(full[2], new_t)

    def test_wrong_shape_is_an_output_error(self, output_system):
        t = np.linspace(0.0, 1.0, 3)
        gens = (OutputGenerator(("x",), (), ("s",), _wrong_shape, name="bad"),)

        with pytest.raises(OutputSignalError, match="bad"):
            compose_outputs(output_system, t, np.vstack([t, t]), np.array([0.0, 0.0]), gens)

    def test_default_generator_name(self):
        gen = OutputGenerator("x", (), ("s", "d"), _double)
        assert gen.signals_in == ("x",)
        assert gen.name == "s,d"
