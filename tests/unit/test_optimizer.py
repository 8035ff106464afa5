import math

import numpy as np
import pytest

from neuralgraph.core import initializers
from neuralgraph.core.activations import SIGMOID, STEP
from neuralgraph.core.errors import (
    DimensionMismatchError,
    InvalidHyperparameterError,
    UnsupportedActivationError,
)
from neuralgraph.core.network import multilayer_perceptron
from neuralgraph.core.types import DataSet, Sample
from neuralgraph.training.losses import BinaryCrossEntropy, Mean, SquaredError
from neuralgraph.training.optimizers import Adam, GradientDescent, get_optimizer


def test_single_step_on_a_one_weight_network():
    network = multilayer_perceptron([1, 1])
    batch = DataSet.of(Sample.of([2.0], [10.0]))
    optimizer = GradientDescent(SquaredError(), learning_rate=0.1)

    gradients = optimizer.step(network, batch)

    np.testing.assert_allclose(gradients, [-20.0])
    output = network.neuron(1, 0)
    assert output.bias == pytest.approx(2.0)
    np.testing.assert_allclose(output.weights, [4.0])
    assert output.total_activations == 0


def test_update_uses_average_input_over_the_batch():
    network = multilayer_perceptron([1, 1])
    batch = DataSet.of(Sample.of([1.0], [1.0]), Sample.of([3.0], [1.0]))
    GradientDescent(Mean(SquaredError()), learning_rate=0.1).step(network, batch)
    output = network.neuron(1, 0)
    # mean residual is -1, so the gradient is -2
    assert output.bias == pytest.approx(0.2)
    np.testing.assert_allclose(output.weights, [0.4])


def test_hidden_signal_reads_updated_downstream_weight():
    network = multilayer_perceptron([1, 1, 1], hidden_activation=SIGMOID)
    hidden, output = network.neuron(1, 0), network.neuron(2, 0)
    hidden.weights = [0.5]
    output.weights = [2.0]
    lr = 0.1

    GradientDescent(SquaredError(), learning_rate=lr).step(
        network, DataSet.of(Sample.of([1.0], [0.0]))
    )

    h = 1.0 / (1.0 + math.exp(-0.5))
    gradient = 2.0 * (2.0 * h)
    new_output_weight = 2.0 - lr * gradient * h
    assert output.bias == pytest.approx(-lr * gradient)
    assert output.weights[0] == pytest.approx(new_output_weight)
    hidden_signal = gradient * new_output_weight * h * (1.0 - h)
    assert hidden.bias == pytest.approx(-lr * hidden_signal)
    assert hidden.weights[0] == pytest.approx(0.5 - lr * hidden_signal * 1.0)


def test_output_gradient_is_chained_through_activation():
    network = multilayer_perceptron([1, 1], output_activation=SIGMOID)
    GradientDescent(BinaryCrossEntropy(), learning_rate=0.1).step(
        network, DataSet.of(Sample.of([1.0], [1.0]))
    )
    output = network.neuron(1, 0)
    # signal is a - y = -0.5 up to the clamping epsilon
    assert output.bias == pytest.approx(0.05, rel=1e-5)
    np.testing.assert_allclose(output.weights, [0.05], rtol=1e-5)


def test_step_reduces_loss():
    network = multilayer_perceptron([2, 3, 1], hidden_activation=SIGMOID)
    network.init(initializers.xavier(seed=0))
    batch = DataSet.from_arrays(np.array([[0.0, 1.0], [1.0, 0.0]]), np.array([1.0, 0.5]))
    loss = Mean(SquaredError())
    before = loss.calculate_loss(batch, network)
    optimizer = GradientDescent(loss, learning_rate=0.05)
    for _ in range(20):
        optimizer.step(network, batch)
    assert loss.calculate_loss(batch, network) < before


def test_learning_rate_is_mutable():
    optimizer = GradientDescent(SquaredError(), learning_rate=0.1)
    optimizer.learning_rate = 0.01
    network = multilayer_perceptron([1, 1])
    optimizer.step(network, DataSet.of(Sample.of([2.0], [10.0])))
    assert network.neuron(1, 0).bias == pytest.approx(0.2)


@pytest.mark.parametrize("lr", [0.0, -0.1, float("nan"), float("inf")])
def test_learning_rate_must_be_positive_and_finite(lr):
    network = multilayer_perceptron([1, 1])
    with pytest.raises(InvalidHyperparameterError):
        GradientDescent(SquaredError(), learning_rate=lr).step(
            network, DataSet.of(Sample.of([2.0], [10.0]))
        )
    np.testing.assert_array_equal(network.parameters(), [0.0, 0.0])


def test_batch_shape_is_validated():
    network = multilayer_perceptron([2, 1])
    optimizer = GradientDescent(SquaredError())
    with pytest.raises(ValueError):
        optimizer.step(network, DataSet())
    with pytest.raises(DimensionMismatchError):
        optimizer.step(network, DataSet.of(Sample.of([1.0], [1.0])))
    with pytest.raises(DimensionMismatchError):
        optimizer.step(network, DataSet.of(Sample.of([1.0, 2.0], [1.0, 2.0])))


def test_step_activation_cannot_be_trained():
    network = multilayer_perceptron([1, 2, 1], hidden_activation=STEP)
    network.init(initializers.constant(0.3))
    before = network.parameters()
    with pytest.raises(UnsupportedActivationError):
        GradientDescent(SquaredError()).step(network, DataSet.of(Sample.of([1.0], [0.0])))
    np.testing.assert_array_equal(network.parameters(), before)


def test_first_adam_step_is_bias_corrected():
    network = multilayer_perceptron([1, 1])
    network.neuron(1, 0).weights = [0.5]
    optimizer = Adam(SquaredError(), learning_rate=0.1)

    optimizer.step(network, DataSet.of(Sample.of([2.0], [3.0])))

    # signal is 2 * (1 - 3) = -4, so the weight gradient is -8
    output = network.neuron(1, 0)
    eps = 1e-8
    assert optimizer.t == 1
    assert output.weights[0] == pytest.approx(0.5 + 0.1 * 8.0 / (8.0 + eps))
    assert output.bias == pytest.approx(0.1 * 4.0 / (4.0 + eps))
    assert output.total_activations == 0


def test_second_adam_step_uses_stored_moments():
    network = multilayer_perceptron([1, 1])
    optimizer = Adam(SquaredError(), learning_rate=0.1, beta1=0.5, beta2=0.5, epsilon=1e-8)
    batch = DataSet.of(Sample.of([1.0], [1.0]))

    optimizer.step(network, batch)
    output = network.neuron(1, 0)
    assert output.bias == pytest.approx(0.1)
    # prediction is now 0.2, so the gradient is 2 * (0.2 - 1) = -1.6 for both parameters
    optimizer.step(network, batch)
    m = (0.5 * (0.5 * -2.0) + 0.5 * -1.6) / (1.0 - 0.25)
    v = (0.5 * (0.5 * 4.0) + 0.5 * 1.6**2) / (1.0 - 0.25)
    expected = 0.1 - 0.1 * m / (math.sqrt(v) + 1e-8)
    assert output.bias == pytest.approx(expected)
    np.testing.assert_allclose(output.weights, [expected])


def test_adam_moments_are_kept_per_neuron():
    network = multilayer_perceptron([2, 3, 1], hidden_activation=SIGMOID)
    network.init(initializers.xavier(seed=0))
    optimizer = Adam(Mean(SquaredError()), learning_rate=0.01)
    batch = DataSet.from_arrays(np.array([[0.0, 1.0], [1.0, 0.0]]), np.array([1.0, 0.5]))
    loss = Mean(SquaredError())
    before = loss.calculate_loss(batch, network)
    for _ in range(50):
        optimizer.step(network, batch)
    assert optimizer.t == 50
    assert loss.calculate_loss(batch, network) < before
    optimizer.reset_state()
    assert optimizer.t == 0


@pytest.mark.parametrize("field, value", [("beta1", 1.0), ("beta2", -0.1), ("epsilon", 0.0)])
def test_adam_hyperparameters_are_validated(field, value):
    network = multilayer_perceptron([1, 1])
    optimizer = Adam(SquaredError(), **{field: value})
    with pytest.raises(InvalidHyperparameterError):
        optimizer.step(network, DataSet.of(Sample.of([2.0], [10.0])))
    assert optimizer.t == 0
    np.testing.assert_array_equal(network.parameters(), [0.0, 0.0])


def test_optimizers_are_looked_up_by_name():
    assert type(get_optimizer("gd", SquaredError(), learning_rate=0.1)) is GradientDescent
    adam = get_optimizer("Adam", SquaredError(), learning_rate=0.01, beta1=0.8)
    assert isinstance(adam, Adam)
    assert adam.beta1 == 0.8
    with pytest.raises(KeyError):
        get_optimizer("rmsprop", SquaredError())
