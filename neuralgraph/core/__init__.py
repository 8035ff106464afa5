"""Core neuron graph primitives for neuralgraph."""

from . import activations, errors, initializers, network, neurons, types

__all__ = ["activations", "errors", "initializers", "network", "neurons", "types"]
