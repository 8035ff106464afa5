"""Training loops over a neuron graph network."""

from __future__ import annotations

import logging
import math
from typing import Dict, Iterator, List, Mapping, Sequence

import numpy as np

from ..core.errors import DimensionMismatchError
from ..core.network import NeuralNetwork
from ..core.types import Array, DataSet, RunResult
from .metrics import compute_metrics, default_metrics, predict
from .optimizers import GradientDescent

logger = logging.getLogger(__name__)

REGIMES = ("online", "batch", "mini_batch")


class Trainer:
    """Drive a :class:`GradientDescent` optimizer through epochs of a dataset.

    ``online`` takes one step per sample, ``batch`` one step per epoch over the
    whole set and ``mini_batch`` one step per consecutive subset of
    ``batch_size`` samples.
    """

    def __init__(
        self,
        network: NeuralNetwork,
        optimizer: GradientDescent,
        callbacks: Sequence[object] | None = None,
    ) -> None:
        self.network = network
        self.optimizer = optimizer
        self.callbacks = list(callbacks or [])

    def run(
        self,
        train_set: DataSet,
        epochs: int,
        *,
        regime: str = "online",
        batch_size: int | None = None,
        val_set: DataSet | None = None,
        task_type: str = "regression",
        metric_names: Sequence[str] | str = (),
        eval_every: int = 1,
        split_loggers: Mapping[str, Sequence[object]] | None = None,
        early_stopping_patience: int | None = None,
        min_improvement: float = 0.0,
        shuffle: bool = False,
        seed: int = 0,
    ) -> RunResult:
        if regime not in REGIMES:
            raise ValueError(f"regime must be one of {REGIMES}, got {regime!r}")
        if epochs < 0:
            raise ValueError(f"epochs must be >= 0, got {epochs}")
        if len(train_set) == 0:
            raise ValueError("Training set is empty")
        if not train_set.is_compatible_with(self.network):
            raise DimensionMismatchError(
                f"Training set shape ({train_set.feature_count()}, "
                f"{train_set.target_count()}) does not match network shape "
                f"({self.network.arity()}, {self.network.co_arity()})"
            )
        if val_set is not None and len(val_set) and not val_set.is_compatible_with(
            self.network
        ):
            raise DimensionMismatchError("Validation set does not match the network shape")
        if regime == "mini_batch" and (batch_size is None or batch_size <= 0):
            raise ValueError("mini_batch regime requires a positive batch_size")

        if isinstance(metric_names, str):
            if metric_names == "default" or metric_names.strip() == "":
                metric_names = default_metrics(task_type)
            else:
                metric_names = [m.strip() for m in metric_names.split(",") if m.strip()]
        metric_names = list(metric_names)

        rng = np.random.default_rng(seed)
        split_loggers = split_loggers or {}
        history: List[dict] = []
        best_loss = math.inf
        best_params: Array | None = None
        epochs_no_improve = 0
        total_steps = 0
        epochs_run = 0
        stopped_early = False
        has_val = val_set is not None and len(val_set) > 0

        logger.info(
            "Training %r for %d epochs (%s regime, %d samples)",
            self.network,
            epochs,
            regime,
            len(train_set),
        )
        for epoch in range(1, epochs + 1):
            epoch_set = train_set.shuffled(rng) if shuffle else train_set
            for batch in self._batches(epoch_set, regime, batch_size):
                self.optimizer.step(self.network, batch)
                total_steps += 1
            epochs_run = epoch

            train_metrics = self._evaluate(train_set, metric_names)
            self._emit_epoch("train", epoch, train_metrics, split_loggers)
            history.append({"epoch": epoch, "split": "train", **train_metrics})

            val_metrics = None
            if has_val and epoch % max(1, eval_every) == 0:
                val_metrics = self._evaluate(val_set, metric_names)
                self._emit_epoch("val", epoch, val_metrics, split_loggers)
                history.append({"epoch": epoch, "split": "val", **val_metrics})

            if has_val:
                if val_metrics is None:
                    continue
                monitored = float(val_metrics["loss"])
            else:
                monitored = float(train_metrics["loss"])
            logger.debug("epoch %d: monitored loss=%.6g", epoch, monitored)
            if monitored < best_loss - min_improvement:
                best_loss = monitored
                best_params = self.network.parameters()
                epochs_no_improve = 0
            else:
                epochs_no_improve += 1
                if (
                    early_stopping_patience
                    and epochs_no_improve >= early_stopping_patience
                ):
                    stopped_early = True
                    logger.info(
                        "Stopping after epoch %d: no improvement for %d evaluations",
                        epoch,
                        epochs_no_improve,
                    )
                    break

        if stopped_early and best_params is not None:
            self.network.set_parameters(best_params)
        final_loss = self.optimizer.loss.calculate_loss(train_set, self.network)
        logger.info("Finished after %d steps, final loss %.6g", total_steps, final_loss)
        return RunResult(
            steps=total_steps,
            epochs=epochs_run,
            final_loss=float(final_loss),
            history=history,
        )

    # ------------------------------------------------------------------
    # Internal helpers

    @staticmethod
    def _batches(
        dataset: DataSet, regime: str, batch_size: int | None
    ) -> Iterator[DataSet]:
        if regime == "online":
            return dataset.batches(1)
        if regime == "batch":
            return iter([dataset])
        return dataset.batches(int(batch_size or 1))

    def _evaluate(self, dataset: DataSet, metric_names: Sequence[str]) -> Dict[str, float]:
        metrics = {"loss": float(self.optimizer.loss.calculate_loss(dataset, self.network))}
        if metric_names:
            metrics.update(
                compute_metrics(
                    metric_names, predict(self.network, dataset), dataset.targets()
                )
            )
        return metrics

    def _emit_epoch(
        self,
        split: str,
        epoch: int,
        metrics: Mapping[str, float],
        loggers: Mapping[str, Sequence[object]],
    ) -> None:
        for callback in self.callbacks:
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
        for callback in loggers.get(split, []):
            if hasattr(callback, "on_epoch"):
                callback.on_epoch(epoch, metrics)  # type: ignore[attr-defined]
            elif callable(callback):
                callback(epoch, metrics)


__all__ = ["REGIMES", "Trainer"]
