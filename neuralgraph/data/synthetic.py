"""Pure in-memory synthetic datasets."""

from __future__ import annotations

from typing import Callable, Dict

import numpy as np

from ..core.types import DataSet
from .registry import DatasetSpec, register_dataset

_GATES: Dict[str, Callable[[int, int], int]] = {
    "and": lambda a, b: a & b,
    "or": lambda a, b: a | b,
    "xor": lambda a, b: a ^ b,
    "nand": lambda a, b: 1 - (a & b),
}


def logic_gate(name: str, *, minus_one: bool = False) -> DataSet:
    """Truth table of a two-input gate, rows in ``00, 01, 10, 11`` order.

    With ``minus_one`` every 0 (inputs and target) becomes -1.
    """

    gate = _GATES[name]
    rows = [(a, b, gate(a, b)) for a in (0, 1) for b in (0, 1)]
    table = np.array(rows, dtype=np.float64)
    if minus_one:
        table[table == 0.0] = -1.0
    return DataSet.from_arrays(table[:, :2], table[:, 2:])


def straight_line(
    n_points: int = 100,
    *,
    slope: float = 3.0,
    intercept: float = 7.0,
    noise: float = 1.0,
    x_max: float = 100.0,
    seed: int = 0,
) -> DataSet:
    """Noisy samples of ``y = slope * x + intercept`` with ``x`` in ``[0, x_max)``."""

    if n_points <= 0:
        raise ValueError(f"n_points must be positive, got {n_points}")
    rng = np.random.default_rng(seed)
    x = rng.uniform(0.0, x_max, size=n_points)
    y = slope * x + intercept + noise * rng.standard_normal(n_points)
    return DataSet.from_arrays(x.reshape(-1, 1), y.reshape(-1, 1))


def _gate_factory(name: str) -> Callable[..., DatasetSpec]:
    def _factory(*, minus_one: bool = False, repeat: int = 1, **_: object) -> DatasetSpec:
        table = logic_gate(name, minus_one=minus_one)
        dataset = DataSet(table.samples * max(1, int(repeat)))
        return DatasetSpec(
            name=name,
            dataset=dataset,
            task_type="binary",
            provenance={"type": "logic_gate", "minus_one": minus_one, "repeat": repeat},
        )

    return _factory


def _line_factory(
    n_points: int = 100,
    slope: float = 3.0,
    intercept: float = 7.0,
    noise: float = 1.0,
    x_max: float = 100.0,
    seed: int = 0,
    **_: object,
) -> DatasetSpec:
    dataset = straight_line(
        n_points, slope=slope, intercept=intercept, noise=noise, x_max=x_max, seed=seed
    )
    provenance = {
        "type": "synthetic",
        "n_points": n_points,
        "slope": slope,
        "intercept": intercept,
        "noise": noise,
        "x_max": x_max,
        "seed": seed,
    }
    return DatasetSpec(
        name="line", dataset=dataset, task_type="regression", provenance=provenance
    )


for _name in _GATES:
    register_dataset(_name, _gate_factory(_name))
register_dataset("line", _line_factory)

__all__ = ["logic_gate", "straight_line"]
