"""Error taxonomy for the neuron graph engine."""

from __future__ import annotations


class DimensionMismatchError(ValueError):
    """An input or target vector does not match the network's layer widths."""


class UnactivatedNeuronError(RuntimeError):
    """The logit or output of a neuron was read before it was activated."""


class UnsupportedCombinationError(ValueError):
    """A loss/activation pairing has no closed-form gradient shortcut."""


class UnsupportedActivationError(UnsupportedCombinationError):
    """A gradient was requested from a non-differentiable activation."""


class InvalidHyperparameterError(ValueError):
    """A hyperparameter (fan-in, learning rate, ...) is outside its domain."""


__all__ = [
    "DimensionMismatchError",
    "InvalidHyperparameterError",
    "UnactivatedNeuronError",
    "UnsupportedActivationError",
    "UnsupportedCombinationError",
]
