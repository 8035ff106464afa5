"""Neurons: the atomic computational units of a network."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .activations import IDENTITY, Activation
from .errors import DimensionMismatchError, UnactivatedNeuronError
from .types import Array


@dataclass
class InputAccumulator:
    """Running sum of the input values a neuron saw since its last reset.

    Dividing the sum by the activation count yields the average input per
    connection, which is what lets a single parameter update average over a
    whole batch without keeping the batch around.
    """

    stored_inputs: Array
    total_activations: int = 0

    @classmethod
    def zeros(cls, size: int) -> "InputAccumulator":
        return cls(stored_inputs=np.zeros(size, dtype=np.float64))

    def record(self, inputs: Array) -> None:
        self.stored_inputs += inputs
        self.total_activations += 1

    def average(self) -> Array:
        if self.total_activations == 0:
            raise UnactivatedNeuronError("No activations recorded since the last reset")
        return self.stored_inputs / self.total_activations

    def reset(self) -> None:
        self.stored_inputs.fill(0.0)
        self.total_activations = 0


class Neuron:
    """Weighted sum of upstream outputs plus a bias, fed through an activation.

    The neuron caches ``logit`` and ``output`` after :meth:`activate`; the cache
    is only readable until :meth:`deactivate` is called.  Input neurons are
    shared references, never owned.
    """

    def __init__(
        self,
        name: str,
        inputs: Sequence["Neuron"] = (),
        activation: Activation = IDENTITY,
    ) -> None:
        self.name = name
        self.inputs: List[Neuron] = list(inputs)
        self.activation = activation
        self.bias = 0.0
        self._weights = np.zeros(len(self.inputs), dtype=np.float64)
        self.accumulator = InputAccumulator.zeros(len(self.inputs))
        self._logit = 0.0
        self._output = 0.0
        self._activated = False

    # ------------------------------------------------------------------
    # Parameters

    @property
    def weights(self) -> Array:
        return self._weights

    @weights.setter
    def weights(self, values: Sequence[float] | Array) -> None:
        array = np.array(values, dtype=np.float64).reshape(-1)
        if array.shape[0] != len(self.inputs):
            raise DimensionMismatchError(
                f"{self.name}: expected {len(self.inputs)} weights, got {array.shape[0]}"
            )
        self._weights = array

    def arity(self) -> int:
        return len(self.inputs)

    def parameter_count(self) -> int:
        return self.arity() + 1

    def parameters(self) -> Array:
        """Weights followed by the bias."""

        return np.append(self._weights, self.bias)

    def set_parameters(self, values: Sequence[float] | Array) -> None:
        values = np.asarray(values, dtype=np.float64).reshape(-1)
        if values.shape[0] != self.parameter_count():
            raise DimensionMismatchError(
                f"{self.name}: expected {self.parameter_count()} parameters, "
                f"got {values.shape[0]}"
            )
        self.weights = values[:-1]
        self.bias = float(values[-1])

    def weight_for(self, source: "Neuron") -> float | None:
        """Return the weight on the edge from ``source``, if connected."""

        for idx, neuron in enumerate(self.inputs):
            if neuron is source:
                return float(self._weights[idx])
        return None

    # ------------------------------------------------------------------
    # Activation state

    @property
    def activated(self) -> bool:
        return self._activated

    @property
    def logit(self) -> float:
        if not self._activated:
            raise UnactivatedNeuronError(f"{self.name} is not activated")
        return self._logit

    @property
    def output(self) -> float:
        if not self._activated:
            raise UnactivatedNeuronError(f"{self.name} is not activated")
        return self._output

    def activate(self) -> None:
        if self._activated:
            return
        values = np.array([neuron.output for neuron in self.inputs], dtype=np.float64)
        self._logit = self.bias + float(np.dot(self._weights, values))
        self._output = float(self.activation.activate(self._logit))
        self.accumulator.record(values)
        self._activated = True

    def deactivate(self) -> None:
        self._activated = False

    def reset(self) -> None:
        self.accumulator.reset()

    @property
    def stored_inputs(self) -> Array:
        return self.accumulator.stored_inputs

    @property
    def total_activations(self) -> int:
        return self.accumulator.total_activations

    def average_inputs(self) -> Array:
        return self.accumulator.average()

    def describe(self) -> str:
        weights = ", ".join(f"{w:.6g}" for w in self._weights)
        return (
            f"{self.name}{{activated={self._activated}, logit={self._logit:.6g}, "
            f"output={self._output:.6g}, activation={self.activation}}}"
            f"[{weights}]+{self.bias:.6g}"
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, arity={self.arity()})"


class InputNeuron(Neuron):
    """Pass-through neuron whose output is clamped from outside."""

    def __init__(self, name: str) -> None:
        super().__init__(name, inputs=(), activation=IDENTITY)

    def set_input_value(self, value: float) -> None:
        self._logit = float(value)
        self._output = float(value)
        self._activated = True

    def activate(self) -> None:
        if not self._activated:
            raise UnactivatedNeuronError(f"{self.name}: must set input value first")


__all__ = ["InputAccumulator", "InputNeuron", "Neuron"]
