"""Dataset registry and metadata contracts."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, MutableMapping

import numpy as np

from ..core.types import DataSet

TASK_TYPES = ("regression", "binary")


@dataclass(frozen=True)
class DatasetSpec:
    """Description of a dataset registered in the system.

    Attributes
    ----------
    name:
        Registry identifier the dataset was built from.
    dataset:
        The samples themselves.
    task_type:
        One of ``{"regression", "binary"}``; drives the ``auto`` loss and the
        default metrics.
    provenance:
        Options the factory was called with, kept so a run can be reproduced.
    """

    name: str
    dataset: DataSet
    task_type: str
    provenance: Dict[str, Any] = field(default_factory=dict)

    @property
    def d_in(self) -> int:
        return self.dataset.feature_count()

    @property
    def d_out(self) -> int:
        return self.dataset.target_count()

    def split(self, val_fraction: float, seed: int = 0) -> tuple[DataSet, DataSet]:
        """Deterministically partition the samples into train and validation sets."""

        if not 0.0 <= val_fraction < 1.0:
            raise ValueError(f"val_fraction must be in [0, 1), got {val_fraction}")
        n = len(self.dataset)
        n_val = int(round(n * val_fraction))
        if n_val == 0:
            return self.dataset, DataSet()
        order = np.random.default_rng(seed).permutation(n)
        samples = self.dataset.samples
        val = DataSet(tuple(samples[i] for i in sorted(order[:n_val])))
        train = DataSet(tuple(samples[i] for i in sorted(order[n_val:])))
        return train, val


DatasetFactory = Callable[..., DatasetSpec]


_REGISTRY: MutableMapping[str, DatasetFactory] = {}


def register_dataset(
    name: str | None = None,
    factory: DatasetFactory | None = None,
) -> Callable[[DatasetFactory], DatasetFactory] | DatasetFactory:
    """Register a dataset factory.

    ``register_dataset`` can be used both as a decorator::

        @register_dataset("xor")
        def make_xor(**kwargs):
            ...

    or directly::

        register_dataset("xor", make_xor)
    """

    def _decorator(func: DatasetFactory) -> DatasetFactory:
        _REGISTRY[str(name or func.__name__)] = func
        return func

    if factory is not None:
        return _decorator(factory)
    if name is None:
        raise TypeError("register_dataset requires a name when used without a decorator")
    return _decorator


def get_dataset(name: str, /, **options: Any) -> DatasetSpec:
    """Build the :class:`DatasetSpec` registered as ``name``."""

    if name not in _REGISTRY:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Unknown dataset: {name}. Available: {available}")
    spec = _REGISTRY[name](**options)
    _validate_spec(spec)
    return spec


def available_datasets() -> Iterable[str]:
    """Return the sorted list of available dataset identifiers."""

    return sorted(_REGISTRY)


def _validate_spec(spec: DatasetSpec) -> None:
    if spec.task_type not in TASK_TYPES:
        raise ValueError(f"Invalid task type: {spec.task_type}")
    if not isinstance(spec.provenance, dict):
        raise TypeError("DatasetSpec.provenance must be a mapping")
    if len(spec.dataset) == 0:
        raise ValueError(f"Dataset {spec.name!r} has no samples")


__all__ = [
    "DatasetSpec",
    "TASK_TYPES",
    "available_datasets",
    "get_dataset",
    "register_dataset",
]
