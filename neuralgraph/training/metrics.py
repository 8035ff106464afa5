"""Evaluation metrics computed from stacked predictions and targets."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping

import numpy as np

from ..core.types import Array, DataSet, Estimator

THRESHOLD = 0.5


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse", "r2"]
    if task_type == "binary":
        return ["accuracy", "precision", "recall", "f1"]
    raise ValueError(f"Unknown task type: {task_type}")


def _confusion(preds: Array, targs: Array) -> tuple[float, float, float]:
    pred_pos = preds >= THRESHOLD
    targ_pos = targs >= THRESHOLD
    tp = float(np.sum(pred_pos & targ_pos))
    fp = float(np.sum(pred_pos & ~targ_pos))
    fn = float(np.sum(~pred_pos & targ_pos))
    return tp, fp, fn


def compute_metric(name: str, predictions: Array, targets: Array) -> MetricResult:
    key = name.lower()
    preds = np.asarray(predictions, dtype=np.float64)
    targs = np.asarray(targets, dtype=np.float64)
    if key == "mae":
        value = float(np.mean(np.abs(preds - targs)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((preds - targs) ** 2)))
    elif key == "r2":
        mean = np.mean(targs, axis=0, keepdims=True)
        ss_res = float(np.sum((targs - preds) ** 2))
        ss_tot = float(np.sum((targs - mean) ** 2))
        value = 1.0 if ss_tot == 0 else float(1 - ss_res / ss_tot)
    elif key == "accuracy":
        value = float(np.mean((preds >= THRESHOLD) == (targs >= THRESHOLD)))
    elif key in {"precision", "recall", "f1"}:
        tp, fp, fn = _confusion(preds, targs)
        precision = tp / (tp + fp + 1e-9)
        recall = tp / (tp + fn + 1e-9)
        if key == "precision":
            value = float(precision)
        elif key == "recall":
            value = float(recall)
        else:
            value = float(2 * precision * recall / (precision + recall + 1e-9))
    else:
        raise KeyError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def compute_metrics(
    names: Iterable[str], predictions: Array, targets: Array
) -> Mapping[str, float]:
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets)
        results[metric.name] = metric.value
    return results


def predict(estimator: Estimator, dataset: DataSet) -> Array:
    """Stack the estimator's outputs for every sample of ``dataset``."""

    if len(dataset) == 0:
        return np.zeros((0, estimator.co_arity()), dtype=np.float64)
    return np.stack([estimator.estimate(sample.features) for sample in dataset])


__all__ = [
    "MetricResult",
    "THRESHOLD",
    "compute_metric",
    "compute_metrics",
    "default_metrics",
    "predict",
]
