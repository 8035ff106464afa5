"""Per-epoch metric sinks, usable as trainer callbacks or split loggers.

Every sink truncates its file when created, so a run directory only ever holds
the records of the latest run.  Each record is tagged with the epoch, the split
and a fixed run context (seed, regime, learning rate, optimizer, ...).
"""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Dict, Mapping

from .artifacts import git_sha


def _scalars(metrics: Mapping[str, object]) -> Dict[str, float]:
    return {key: float(value) for key, value in metrics.items() if isinstance(value, (int, float))}


class _EpochSink:
    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        context: Mapping[str, object] | None = None,
    ) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.split = split
        self.context = dict(context or {})

    def record(self, epoch: int, metrics: Mapping[str, object]) -> Dict[str, object]:
        return {"epoch": int(epoch), "split": self.split, **self.context, **_scalars(metrics)}

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        raise NotImplementedError

    def __call__(self, epoch: int, metrics: Mapping[str, object]) -> None:
        self.on_epoch(epoch, metrics)


class JsonlSink(_EpochSink):
    """One JSON object per epoch.

    ``seed`` and ``sha`` are shorthands for the matching context keys; the
    commit defaults to the current ``git`` HEAD.
    """

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        seed: int | None = None,
        sha: str | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        merged = {"seed": seed, "sha": sha or git_sha()}
        merged.update(context or {})
        super().__init__(path, split=split, context=merged)

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(self.record(epoch, metrics)) + "\n")


class CsvSink(_EpochSink):
    """CSV rows with the columns fixed by the first record, sorted by name."""

    def __init__(
        self,
        path: str | Path,
        *,
        split: str = "train",
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(path, split=split, context=context)
        self.columns: list[str] | None = None

    def on_epoch(self, epoch: int, metrics: Mapping[str, object]) -> None:
        row = self.record(epoch, metrics)
        if self.columns is None:
            self.columns = sorted(row)
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=self.columns, extrasaction="ignore")
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


__all__ = ["CsvSink", "JsonlSink"]
