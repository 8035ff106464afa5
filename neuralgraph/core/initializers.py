"""Parameter initializers.

An :class:`Initializer` mutates a single neuron in place.  ``fan_out`` is the
number of downstream neurons that consume the neuron's output; only Xavier
uses it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict

import numpy as np

from .errors import InvalidHyperparameterError
from .neurons import Neuron


class InitializerKind(str, Enum):
    CONSTANT = "constant"
    UNIFORM = "uniform"
    HE = "he"
    XAVIER = "xavier"


@dataclass
class Initializer:
    kind: InitializerKind
    value: float = 0.0
    seed: int | None = None
    rng: np.random.Generator = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.rng = np.random.default_rng(self.seed)

    @property
    def name(self) -> str:
        return self.kind.value

    def initialize(self, neuron: Neuron, fan_out: int = 0) -> None:
        fan_in = neuron.arity()
        if fan_in == 0:
            raise InvalidHyperparameterError(
                f"Cannot initialize {neuron.name}: it has no inputs"
            )
        if fan_out < 0:
            raise InvalidHyperparameterError(f"fan_out must be >= 0, got {fan_out}")
        _INITIALIZE[self.kind](self, neuron, fan_in, fan_out)


def _constant(init: Initializer, neuron: Neuron, fan_in: int, _: int) -> None:
    neuron.weights = np.full(fan_in, init.value, dtype=np.float64)
    neuron.bias = float(init.value)


def _uniform(init: Initializer, neuron: Neuron, fan_in: int, _: int) -> None:
    neuron.weights = init.rng.uniform(-1.0, 1.0, size=fan_in) / fan_in


def _he(init: Initializer, neuron: Neuron, fan_in: int, _: int) -> None:
    neuron.weights = init.rng.normal(0.0, np.sqrt(2.0 / fan_in), size=fan_in)


def _xavier(init: Initializer, neuron: Neuron, fan_in: int, fan_out: int) -> None:
    limit = np.sqrt(6.0 / (fan_in + fan_out))
    neuron.weights = init.rng.uniform(-limit, limit, size=fan_in)


_INITIALIZE: Dict[InitializerKind, Callable[[Initializer, Neuron, int, int], None]] = {
    InitializerKind.CONSTANT: _constant,
    InitializerKind.UNIFORM: _uniform,
    InitializerKind.HE: _he,
    InitializerKind.XAVIER: _xavier,
}


def constant(value: float = 0.0) -> Initializer:
    return Initializer(InitializerKind.CONSTANT, value=float(value))


def uniform(seed: int | None = None) -> Initializer:
    return Initializer(InitializerKind.UNIFORM, seed=seed)


def he(seed: int | None = None) -> Initializer:
    return Initializer(InitializerKind.HE, seed=seed)


def xavier(seed: int | None = None) -> Initializer:
    return Initializer(InitializerKind.XAVIER, seed=seed)


def get(name: str, seed: int | None = None, value: float = 0.0) -> Initializer:
    """Resolve an initializer by name."""

    key = str(name).strip().lower()
    try:
        kind = InitializerKind(key)
    except ValueError as exc:
        available = ", ".join(kind.value for kind in InitializerKind)
        raise KeyError(f"Unknown initializer {name!r}. Available: {available}") from exc
    if kind is InitializerKind.CONSTANT:
        return constant(value)
    return Initializer(kind, seed=seed)


__all__ = [
    "Initializer",
    "InitializerKind",
    "constant",
    "get",
    "he",
    "uniform",
    "xavier",
]
