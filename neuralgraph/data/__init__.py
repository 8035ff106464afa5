"""Dataset registry and built-in synthetic datasets."""

# Ensure built-in datasets register themselves when the package is imported.
from . import synthetic as _synthetic  # noqa: F401
from .registry import DatasetSpec, available_datasets, get_dataset, register_dataset
from .synthetic import logic_gate, straight_line

__all__ = [
    "DatasetSpec",
    "available_datasets",
    "get_dataset",
    "logic_gate",
    "register_dataset",
    "straight_line",
]
