"""Gradient descent with backpropagation over the neuron graph."""

from __future__ import annotations

import logging
import math
from typing import Dict, Tuple

import numpy as np

from ..core.errors import (
    DimensionMismatchError,
    InvalidHyperparameterError,
    UnsupportedActivationError,
)
from ..core.network import NeuralNetwork
from ..core.neurons import Neuron
from ..core.types import Array, DataSet
from .losses import OUTPUT, LossFunction

logger = logging.getLogger(__name__)


class GradientDescent:
    """Plain gradient descent.

    One :meth:`step` runs the batch forward through ``loss``, then walks the
    layers from the output back to layer 1.  Each neuron's error signal is
    recorded and its parameters are updated right away, using the average of
    the inputs it saw during the batch.
    """

    def __init__(self, loss: LossFunction, learning_rate: float = 0.1) -> None:
        self.loss = loss
        self.learning_rate = learning_rate

    def _validate(self, network: NeuralNetwork, batch: DataSet) -> None:
        if len(batch) == 0:
            raise ValueError("Cannot take a gradient step on an empty batch")
        if batch.feature_count() != network.arity():
            raise DimensionMismatchError(
                f"Batch has {batch.feature_count()} features, network expects {network.arity()}"
            )
        if batch.target_count() != network.co_arity():
            raise DimensionMismatchError(
                f"Batch has {batch.target_count()} targets, network produces "
                f"{network.co_arity()}"
            )
        lr = float(self.learning_rate)
        if not math.isfinite(lr) or lr <= 0.0:
            raise InvalidHyperparameterError(
                f"Learning rate must be positive and finite, got {self.learning_rate}"
            )
        for neuron in network.trainable_neurons():
            if not neuron.activation.is_differentiable():
                raise UnsupportedActivationError(
                    f"{neuron.name} uses the {neuron.activation.name} activation, "
                    "which cannot be trained with gradient descent"
                )

    def step(self, network: NeuralNetwork, batch: DataSet) -> Array:
        """Apply one parameter update for ``batch`` and return the loss gradients."""

        self._validate(network, batch)
        network.reset()
        gradients = self.loss.determine_gradients(batch, network)
        chain_output = self.loss.gradient_target == OUTPUT

        signals: Dict[Neuron, float] = {}
        depth = network.depth()
        for layer in range(depth, 0, -1):
            for index in range(network.width(layer)):
                neuron = network.neuron(layer, index)
                if layer == depth:
                    signal = float(gradients[index])
                    if chain_output:
                        signal *= neuron.activation.gradient_at_output(neuron.output)
                else:
                    connections = network.output_connections(layer, index)
                    signal = sum(
                        signals[target] * weight for target, weight in connections.items()
                    )
                    signal *= neuron.activation.gradient_at_output(neuron.output)
                signals[neuron] = signal
                self._update(neuron, signal)

        logger.debug(
            "Gradient step over %d samples, lr=%g, gradients=%s",
            len(batch),
            self.learning_rate,
            gradients,
        )
        return gradients

    def _update(self, neuron: Neuron, signal: float) -> None:
        scale = signal * self.learning_rate
        neuron.bias -= scale
        neuron.weights = neuron.weights - scale * neuron.average_inputs()
        neuron.reset()


class Adam(GradientDescent):
    """Adam (Kingma & Ba, 2014) on top of the same backpropagation walk.

    The error signal of every neuron is turned into a weight gradient
    ``signal * average_input`` and a bias gradient ``signal``.  First and
    second moments are kept per neuron; the step counter ``t`` is shared by
    the whole network and drives the bias correction.
    """

    def __init__(
        self,
        loss: LossFunction,
        learning_rate: float = 1e-3,
        beta1: float = 0.9,
        beta2: float = 0.999,
        epsilon: float = 1e-8,
    ) -> None:
        super().__init__(loss, learning_rate)
        self.beta1 = beta1
        self.beta2 = beta2
        self.epsilon = epsilon
        self.t = 0
        self._moments: Dict[Neuron, Tuple[Array, Array]] = {}

    def _validate(self, network: NeuralNetwork, batch: DataSet) -> None:
        super()._validate(network, batch)
        for name in ("beta1", "beta2"):
            value = float(getattr(self, name))
            if not 0.0 <= value < 1.0:
                raise InvalidHyperparameterError(f"{name} must lie in [0, 1), got {value}")
        if not float(self.epsilon) > 0.0:
            raise InvalidHyperparameterError(f"epsilon must be positive, got {self.epsilon}")

    def step(self, network: NeuralNetwork, batch: DataSet) -> Array:
        self._validate(network, batch)
        self.t += 1
        return super().step(network, batch)

    def reset_state(self) -> None:
        """Forget all moments and restart bias correction."""

        self.t = 0
        self._moments.clear()

    def _update(self, neuron: Neuron, signal: float) -> None:
        gradient = np.append(signal * neuron.average_inputs(), signal)
        first, second = self._moments.get(neuron, (None, None))
        if first is None or first.shape != gradient.shape:
            first = np.zeros_like(gradient)
            second = np.zeros_like(gradient)
        first = self.beta1 * first + (1.0 - self.beta1) * gradient
        second = self.beta2 * second + (1.0 - self.beta2) * np.square(gradient)
        self._moments[neuron] = (first, second)

        first_hat = first / (1.0 - self.beta1**self.t)
        second_hat = second / (1.0 - self.beta2**self.t)
        delta = self.learning_rate * first_hat / (np.sqrt(second_hat) + self.epsilon)
        neuron.weights = neuron.weights - delta[:-1]
        neuron.bias -= float(delta[-1])
        neuron.reset()


OPTIMIZERS = {"gd": GradientDescent, "sgd": GradientDescent, "adam": Adam}


def get_optimizer(name: str, loss: LossFunction, **hyperparameters: float) -> GradientDescent:
    try:
        factory = OPTIMIZERS[name.lower()]
    except KeyError as exc:
        raise KeyError(f"Unknown optimizer: {name}. Known: {sorted(OPTIMIZERS)}") from exc
    return factory(loss, **hyperparameters)


__all__ = ["Adam", "GradientDescent", "OPTIMIZERS", "get_optimizer"]
