import numpy as np
import pytest

from neuralgraph.core import activations
from neuralgraph.core.activations import IDENTITY, RELU, SIGMOID, STEP, TANH
from neuralgraph.core.errors import UnsupportedActivationError


def _numerical_slope(fn, z, h=1e-4):
    return (fn.activate(z + h) - fn.activate(z - h)) / (2 * h)


@pytest.mark.parametrize("fn", [IDENTITY, RELU, SIGMOID, TANH])
@pytest.mark.parametrize("z", [-2.0, -0.5, 0.3, 1.7])
def test_gradient_at_output_matches_numerical_derivative(fn, z):
    y = fn.activate(z)
    assert fn.gradient_at_output(y) == pytest.approx(_numerical_slope(fn, z), abs=1e-6)


def test_scalars_in_scalars_out():
    assert isinstance(SIGMOID.activate(0.0), float)
    assert SIGMOID.activate(0.0) == pytest.approx(0.5)
    assert RELU.activate(-3.0) == 0.0
    assert IDENTITY.activate(2.5) == 2.5


def test_arrays_in_arrays_out():
    out = SIGMOID.activate(np.array([0.0, 0.0]))
    assert isinstance(out, np.ndarray)
    np.testing.assert_allclose(out, [0.5, 0.5])
    np.testing.assert_allclose(RELU.gradient_at_output(np.array([0.0, 2.0])), [0.0, 1.0])


def test_sigmoid_saturates_without_overflow():
    with np.errstate(over="raise"):
        assert SIGMOID.activate(1000.0) == 1.0
        assert SIGMOID.activate(-1000.0) == 0.0


def test_sigmoid_slope_clamps_and_rejects_non_finite():
    assert SIGMOID.gradient_at_output(1.2) == 0.0
    assert SIGMOID.gradient_at_output(-0.1) == 0.0
    with pytest.raises(ValueError):
        SIGMOID.gradient_at_output(float("nan"))


def test_step_levels_and_threshold():
    fn = activations.step(low=-1.0, high=1.0, threshold=0.5)
    assert fn.activate(0.4) == -1.0
    assert fn.activate(0.5) == 1.0
    assert STEP.activate(-0.1) == 0.0
    assert STEP.activate(0.0) == 1.0
    assert not fn.is_differentiable()


def test_step_has_no_gradient():
    with pytest.raises(UnsupportedActivationError):
        STEP.gradient_at_output(1.0)


def test_get_resolves_names_and_aliases():
    assert activations.get("linear") is IDENTITY
    assert activations.get("None") is IDENTITY
    assert activations.get(" Sigmoid ") is SIGMOID
    assert activations.get(TANH) is TANH
    with pytest.raises(KeyError):
        activations.get("softplus")


def test_shared_instances_are_immutable():
    with pytest.raises(AttributeError):
        RELU.threshold = 1.0  # type: ignore[misc]
