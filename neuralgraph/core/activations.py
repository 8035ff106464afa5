"""Activation functions for neuralgraph.

Every activation is a frozen :class:`Activation` value tagged with an
:class:`ActivationKind`.  Behaviour is looked up in one function table per
capability, so adding a variant means adding one row to each table.

``gradient_at_output`` returns the slope of the function expressed in terms of
its *output*, which is what backpropagation has cached on each neuron.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict

import numpy as np

from .errors import UnsupportedActivationError
from .types import Array

Value = float | Array


class ActivationKind(str, Enum):
    IDENTITY = "identity"
    RELU = "relu"
    SIGMOID = "sigmoid"
    TANH = "tanh"
    STEP = "step"


@dataclass(frozen=True)
class Activation:
    """A scalar activation function and its output-domain derivative."""

    kind: ActivationKind
    low: float = 0.0
    high: float = 1.0
    threshold: float = 0.0

    @property
    def name(self) -> str:
        return self.kind.value

    def activate(self, logit: Value) -> Value:
        return _ACTIVATE[self.kind](self, logit)

    def gradient_at_output(self, output: Value) -> Value:
        return _GRADIENT[self.kind](self, output)

    def is_differentiable(self) -> bool:
        return self.kind is not ActivationKind.STEP

    def __str__(self) -> str:
        return self.name


def _scalar_or_array(value: Array, like: Value) -> Value:
    if np.ndim(like) == 0:
        return float(value)
    return value


def _identity(_: Activation, x: Value) -> Value:
    return _scalar_or_array(np.asarray(x, dtype=np.float64), x)


def _relu(_: Activation, x: Value) -> Value:
    return _scalar_or_array(np.maximum(np.asarray(x, dtype=np.float64), 0.0), x)


def _sigmoid(_: Activation, x: Value) -> Value:
    z = np.asarray(x, dtype=np.float64)
    # exp of a non-positive number never overflows
    e = np.exp(-np.abs(z))
    out = np.where(z >= 0, 1.0 / (1.0 + e), e / (1.0 + e))
    return _scalar_or_array(out, x)


def _tanh(_: Activation, x: Value) -> Value:
    return _scalar_or_array(np.tanh(np.asarray(x, dtype=np.float64)), x)


def _step(fn: Activation, x: Value) -> Value:
    z = np.asarray(x, dtype=np.float64)
    return _scalar_or_array(np.where(z < fn.threshold, fn.low, fn.high), x)


def _identity_grad(_: Activation, y: Value) -> Value:
    return _scalar_or_array(np.ones_like(np.asarray(y, dtype=np.float64)), y)


def _relu_grad(_: Activation, y: Value) -> Value:
    out = (np.asarray(y, dtype=np.float64) > 0.0).astype(np.float64)
    return _scalar_or_array(out, y)


def _sigmoid_grad(_: Activation, y: Value) -> Value:
    out = np.asarray(y, dtype=np.float64)
    if not np.all(np.isfinite(out)):
        raise ValueError("Sigmoid output must be finite")
    # numeric drift can push outputs slightly outside [0, 1]
    out = np.clip(out, 0.0, 1.0)
    return _scalar_or_array(out * (1.0 - out), y)


def _tanh_grad(_: Activation, y: Value) -> Value:
    out = np.asarray(y, dtype=np.float64)
    return _scalar_or_array(1.0 - out**2, y)


def _step_grad(_: Activation, y: Value) -> Value:
    raise UnsupportedActivationError(
        "The step activation is not differentiable; use it for inference only"
    )


_ACTIVATE: Dict[ActivationKind, Callable[[Activation, Value], Value]] = {
    ActivationKind.IDENTITY: _identity,
    ActivationKind.RELU: _relu,
    ActivationKind.SIGMOID: _sigmoid,
    ActivationKind.TANH: _tanh,
    ActivationKind.STEP: _step,
}

_GRADIENT: Dict[ActivationKind, Callable[[Activation, Value], Value]] = {
    ActivationKind.IDENTITY: _identity_grad,
    ActivationKind.RELU: _relu_grad,
    ActivationKind.SIGMOID: _sigmoid_grad,
    ActivationKind.TANH: _tanh_grad,
    ActivationKind.STEP: _step_grad,
}


IDENTITY = Activation(ActivationKind.IDENTITY)
RELU = Activation(ActivationKind.RELU)
SIGMOID = Activation(ActivationKind.SIGMOID)
TANH = Activation(ActivationKind.TANH)
STEP = Activation(ActivationKind.STEP)

_BY_NAME: Dict[str, Activation] = {
    "identity": IDENTITY,
    "linear": IDENTITY,
    "none": IDENTITY,
    "relu": RELU,
    "sigmoid": SIGMOID,
    "tanh": TANH,
    "step": STEP,
}


def step(low: float = 0.0, high: float = 1.0, threshold: float = 0.0) -> Activation:
    """Return a step activation with the given levels and threshold."""

    return Activation(ActivationKind.STEP, low=low, high=high, threshold=threshold)


def get(name: str | Activation) -> Activation:
    """Resolve an activation by name (case-insensitive)."""

    if isinstance(name, Activation):
        return name
    key = str(name).strip().lower()
    try:
        return _BY_NAME[key]
    except KeyError as exc:
        available = ", ".join(sorted(_BY_NAME))
        raise KeyError(f"Unknown activation {name!r}. Available: {available}") from exc


__all__ = [
    "Activation",
    "ActivationKind",
    "IDENTITY",
    "RELU",
    "SIGMOID",
    "STEP",
    "TANH",
    "get",
    "step",
]
