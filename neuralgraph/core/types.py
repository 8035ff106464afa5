"""Core typing contracts for neuralgraph."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, List, Protocol, Sequence, Tuple

import numpy as np

from .errors import DimensionMismatchError

Array = np.ndarray


def _frozen_vector(values: Sequence[float] | Array, what: str) -> Array:
    vector = np.array(values, dtype=np.float64).reshape(-1)
    if vector.ndim != 1:  # pragma: no cover - reshape guarantees 1-D
        raise ValueError(f"{what} must be a 1-D vector")
    vector.setflags(write=False)
    return vector


class Estimator(Protocol):
    """Anything a loss function can evaluate: a network or a plain model."""

    def estimate(self, inputs: Sequence[float] | Array) -> Array:
        """Return the outputs for ``inputs``."""

    def arity(self) -> int:
        """Number of inputs."""

    def co_arity(self) -> int:
        """Number of outputs."""


@dataclass(frozen=True)
class Sample:
    """A single training example."""

    features: Array
    targets: Array

    def __post_init__(self) -> None:
        object.__setattr__(self, "features", _frozen_vector(self.features, "features"))
        object.__setattr__(self, "targets", _frozen_vector(self.targets, "targets"))

    @classmethod
    def of(cls, features: Sequence[float], targets: Sequence[float]) -> "Sample":
        return cls(np.asarray(features), np.asarray(targets))

    def feature_count(self) -> int:
        return int(self.features.shape[0])

    def target_count(self) -> int:
        return int(self.targets.shape[0])

    def is_compatible_with(self, estimator: Estimator) -> bool:
        return (
            estimator.arity() == self.feature_count()
            and estimator.co_arity() == self.target_count()
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Sample):
            return NotImplemented
        return np.array_equal(self.features, other.features) and np.array_equal(
            self.targets, other.targets
        )

    def __hash__(self) -> int:
        return hash((self.features.tobytes(), self.targets.tobytes()))


@dataclass(frozen=True)
class DataSet:
    """Ordered, immutable collection of equally shaped samples."""

    samples: Tuple[Sample, ...] = ()

    def __post_init__(self) -> None:
        samples = tuple(self.samples)
        object.__setattr__(self, "samples", samples)
        if not samples:
            return
        first = samples[0]
        for idx, sample in enumerate(samples[1:], start=1):
            if (
                sample.feature_count() != first.feature_count()
                or sample.target_count() != first.target_count()
            ):
                raise DimensionMismatchError(
                    f"Sample {idx} has shape ({sample.feature_count()}, "
                    f"{sample.target_count()}), expected ({first.feature_count()}, "
                    f"{first.target_count()})"
                )

    @classmethod
    def of(cls, *samples: Sample) -> "DataSet":
        return cls(samples)

    @classmethod
    def from_arrays(cls, inputs: Array, targets: Array) -> "DataSet":
        """Build a dataset from row-aligned 2-D ``inputs`` and ``targets``."""

        inputs = np.asarray(inputs, dtype=np.float64)
        targets = np.asarray(targets, dtype=np.float64)
        if inputs.ndim == 1:
            inputs = inputs.reshape(-1, 1)
        if targets.ndim == 1:
            targets = targets.reshape(-1, 1)
        if inputs.shape[0] != targets.shape[0]:
            raise DimensionMismatchError(
                f"{inputs.shape[0]} feature rows but {targets.shape[0]} target rows"
            )
        return cls(tuple(Sample(x, y) for x, y in zip(inputs, targets)))

    def __len__(self) -> int:
        return len(self.samples)

    def __iter__(self) -> Iterator[Sample]:
        return iter(self.samples)

    def __getitem__(self, index: int) -> Sample:
        return self.samples[index]

    def subset(self, start: int, stop: int) -> "DataSet":
        """Return the contiguous samples ``[start, stop)``."""

        return DataSet(self.samples[start:stop])

    def batches(self, size: int) -> Iterator["DataSet"]:
        """Yield consecutive subsets of at most ``size`` samples."""

        if size <= 0:
            raise ValueError(f"Batch size must be positive, got {size}")
        for start in range(0, len(self.samples), size):
            yield self.subset(start, start + size)

    def shuffled(self, rng: np.random.Generator) -> "DataSet":
        order = rng.permutation(len(self.samples))
        return DataSet(tuple(self.samples[i] for i in order))

    def feature_count(self) -> int:
        if not self.samples:
            raise ValueError("Empty dataset has no feature count")
        return self.samples[0].feature_count()

    def target_count(self) -> int:
        if not self.samples:
            raise ValueError("Empty dataset has no target count")
        return self.samples[0].target_count()

    def is_compatible_with(self, estimator: Estimator) -> bool:
        return not self.samples or self.samples[0].is_compatible_with(estimator)

    def inputs(self) -> Array:
        return np.stack([sample.features for sample in self.samples])

    def targets(self) -> Array:
        return np.stack([sample.targets for sample in self.samples])


@dataclass(frozen=True)
class ModelDescription:
    """Shape summary of a feed-forward network, input layer first."""

    layer_dims: List[int]
    activations: List[List[str]] = field(default_factory=list)
    parameters: int = 0

    def to_dict(self) -> dict:
        return {
            "layer_dims": list(self.layer_dims),
            "activations": [list(layer) for layer in self.activations],
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class RunResult:
    """Summary returned by :meth:`neuralgraph.training.trainer.Trainer.run`."""

    steps: int
    epochs: int
    final_loss: float
    history: List[dict] = field(default_factory=list)
    metrics_path: str = ""
    manifest_path: str = ""
