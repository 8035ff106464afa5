"""Loss functions evaluated over a dataset and an estimator.

Every loss exposes the same three operations: the summed output error, the
gradient handed to backpropagation, and the scalar loss.  ``gradient_target``
tells the optimizer whether the gradient already is the output neuron's error
signal (``"logit"``) or still has to be multiplied by the activation slope
(``"output"``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, Protocol

import numpy as np

from ..core.activations import IDENTITY, ActivationKind
from ..core.errors import DimensionMismatchError, UnsupportedCombinationError
from ..core.types import Array, DataSet, Estimator

LOGIT = "logit"
OUTPUT = "output"

_SHORTCUT_ACTIVATIONS = {ActivationKind.IDENTITY, ActivationKind.RELU}


class LossFunction(Protocol):
    gradient_target: str

    def calculate_output_errors(self, dataset: DataSet, estimator: Estimator) -> Array:
        ...

    def determine_gradients(self, dataset: DataSet, estimator: Estimator) -> Array:
        ...

    def calculate_loss(self, dataset: DataSet, estimator: Estimator) -> float:
        ...


def _check(dataset: DataSet, estimator: Estimator) -> None:
    if len(dataset) == 0:
        raise ValueError("Cannot evaluate a loss over an empty dataset")
    if not dataset.is_compatible_with(estimator):
        raise DimensionMismatchError(
            f"Dataset shape ({dataset.feature_count()}, {dataset.target_count()}) does not "
            f"match estimator shape ({estimator.arity()}, {estimator.co_arity()})"
        )


def _residuals(dataset: DataSet, estimator: Estimator) -> Array:
    return np.stack(
        [estimator.estimate(sample.features) - sample.targets for sample in dataset]
    )


@dataclass(frozen=True)
class SquaredError:
    """Sum of squared errors.

    With ``shortcut`` the gradient ``2 * errors`` is used directly as the
    output error signal, which is only exact for identity outputs (and relu
    outputs in their active region).
    """

    shortcut: bool = True

    @property
    def gradient_target(self) -> str:
        return LOGIT if self.shortcut else OUTPUT

    def _check_shortcut(self, estimator: Estimator) -> None:
        if not self.shortcut:
            return
        outputs = getattr(estimator, "output_activations", None)
        if outputs is None:
            outputs = [getattr(estimator, "output_activation", IDENTITY)]
        for index, activation in enumerate(outputs):
            if activation.kind not in _SHORTCUT_ACTIVATIONS:
                raise UnsupportedCombinationError(
                    f"Squared error gradients cannot be used as error signals for "
                    f"{activation.name} outputs (output {index}); "
                    "use SquaredError(shortcut=False)"
                )

    def calculate_output_errors(self, dataset: DataSet, estimator: Estimator) -> Array:
        _check(dataset, estimator)
        return _residuals(dataset, estimator).sum(axis=0)

    def determine_gradients(self, dataset: DataSet, estimator: Estimator) -> Array:
        self._check_shortcut(estimator)
        return 2.0 * self.calculate_output_errors(dataset, estimator)

    def calculate_loss(self, dataset: DataSet, estimator: Estimator) -> float:
        _check(dataset, estimator)
        squared = np.square(_residuals(dataset, estimator)).sum(axis=0)
        return float(np.mean(squared))


@dataclass(frozen=True)
class BinaryCrossEntropy:
    """Cross entropy for outputs in (0, 1), averaged over the batch."""

    eps: float = 1e-7
    gradient_target: str = field(default=OUTPUT, init=False)

    def _outputs(self, dataset: DataSet, estimator: Estimator) -> tuple[Array, Array]:
        _check(dataset, estimator)
        outputs = np.stack([estimator.estimate(sample.features) for sample in dataset])
        return np.clip(outputs, self.eps, 1.0 - self.eps), dataset.targets()

    def calculate_output_errors(self, dataset: DataSet, estimator: Estimator) -> Array:
        return self.determine_gradients(dataset, estimator)

    def determine_gradients(self, dataset: DataSet, estimator: Estimator) -> Array:
        a, y = self._outputs(dataset, estimator)
        eps = self.eps
        grads = -(y / (a + eps) - (1.0 - y) / (1.0 - a + eps))
        return grads.mean(axis=0)

    def calculate_loss(self, dataset: DataSet, estimator: Estimator) -> float:
        a, y = self._outputs(dataset, estimator)
        eps = self.eps
        losses = -(y * np.log(a + eps) + (1.0 - y) * np.log(1.0 - a + eps))
        return float(np.mean(losses))


@dataclass(frozen=True)
class Mean:
    """Divide every quantity of ``inner`` by the number of samples."""

    inner: LossFunction

    @property
    def gradient_target(self) -> str:
        return self.inner.gradient_target

    def calculate_output_errors(self, dataset: DataSet, estimator: Estimator) -> Array:
        return self.inner.calculate_output_errors(dataset, estimator) / len(dataset)

    def determine_gradients(self, dataset: DataSet, estimator: Estimator) -> Array:
        return self.inner.determine_gradients(dataset, estimator) / len(dataset)

    def calculate_loss(self, dataset: DataSet, estimator: Estimator) -> float:
        return self.inner.calculate_loss(dataset, estimator) / len(dataset)


@dataclass(frozen=True)
class Scaled:
    """Multiply every quantity of ``inner`` by ``factor``."""

    factor: float
    inner: LossFunction

    @property
    def gradient_target(self) -> str:
        return self.inner.gradient_target

    def calculate_output_errors(self, dataset: DataSet, estimator: Estimator) -> Array:
        return self.factor * self.inner.calculate_output_errors(dataset, estimator)

    def determine_gradients(self, dataset: DataSet, estimator: Estimator) -> Array:
        return self.factor * self.inner.determine_gradients(dataset, estimator)

    def calculate_loss(self, dataset: DataSet, estimator: Estimator) -> float:
        return self.factor * self.inner.calculate_loss(dataset, estimator)


def mean_squared_error(shortcut: bool = True) -> Scaled:
    """Half the mean squared error, so the gradient is the mean residual."""

    return Scaled(0.5, Mean(SquaredError(shortcut=shortcut)))


class LossRegistry:
    """Central registry for loss functions."""

    def __init__(self) -> None:
        self._registry: Dict[str, LossFunction] = {}

    def register(self, name: str, loss: LossFunction) -> None:
        self._registry[name] = loss

    def get(self, name: str) -> LossFunction:
        try:
            return self._registry[name]
        except KeyError as exc:
            available = ", ".join(sorted(self._registry))
            raise KeyError(f"Unknown loss {name!r}. Available losses: {available}") from exc

    def names(self) -> Iterable[str]:
        return sorted(self._registry)

    def resolve(self, name: str, *, task_type: str) -> LossFunction:
        if name == "auto":
            if task_type == "regression":
                name = "mse"
            elif task_type == "binary":
                name = "bce"
            else:
                raise ValueError(f"Unknown task type: {task_type}")
        return self.get(name)


REGISTRY = LossRegistry()
REGISTRY.register("squared_error", SquaredError())
REGISTRY.register("sse", SquaredError())
REGISTRY.register("mse", mean_squared_error())
# Chains the gradient through the output activation, for sigmoid/tanh outputs
REGISTRY.register("mse_chain", mean_squared_error(shortcut=False))
REGISTRY.register("bce", BinaryCrossEntropy())

__all__ = [
    "BinaryCrossEntropy",
    "LOGIT",
    "LossFunction",
    "LossRegistry",
    "Mean",
    "OUTPUT",
    "REGISTRY",
    "Scaled",
    "SquaredError",
    "mean_squared_error",
]
