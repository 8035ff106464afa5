import csv
import json

import numpy as np
import pytest

from neuralgraph.core.types import DataSet
from neuralgraph.data import available_datasets, get_dataset, logic_gate, register_dataset
from neuralgraph.data.registry import DatasetSpec
from neuralgraph.reporting.metrics import CsvSink, JsonlSink
from neuralgraph.training.metrics import compute_metrics, default_metrics


@pytest.mark.parametrize(
    "name, expected",
    [("and", [0, 0, 0, 1]), ("or", [0, 1, 1, 1]), ("xor", [0, 1, 1, 0]), ("nand", [1, 1, 1, 0])],
)
def test_logic_gate_truth_tables(name, expected):
    dataset = logic_gate(name)
    np.testing.assert_array_equal(dataset.inputs(), [[0, 0], [0, 1], [1, 0], [1, 1]])
    np.testing.assert_array_equal(dataset.targets()[:, 0], expected)


def test_logic_gate_minus_one():
    dataset = logic_gate("and", minus_one=True)
    np.testing.assert_array_equal(dataset.inputs()[0], [-1.0, -1.0])
    np.testing.assert_array_equal(dataset.targets()[:, 0], [-1, -1, -1, 1])


def test_builtin_datasets_are_registered():
    assert {"and", "or", "xor", "nand", "line"} <= set(available_datasets())
    spec = get_dataset("xor", repeat=3)
    assert spec.task_type == "binary"
    assert len(spec.dataset) == 12
    with pytest.raises(KeyError):
        get_dataset("mnist")


def test_line_is_seeded_and_follows_the_slope():
    first = get_dataset("line", n_points=200, seed=4)
    second = get_dataset("line", n_points=200, seed=4)
    assert first.dataset == second.dataset
    assert first.task_type == "regression"
    x, y = first.dataset.inputs()[:, 0], first.dataset.targets()[:, 0]
    assert np.all((x >= 0.0) & (x < 100.0))
    slope, intercept = np.polyfit(x, y, 1)
    assert slope == pytest.approx(3.0, abs=0.05)
    assert intercept == pytest.approx(7.0, abs=1.0)


def test_split_is_deterministic_and_disjoint():
    spec = get_dataset("line", n_points=50, seed=0)
    train, val = spec.split(0.2, seed=1)
    assert len(train) == 40
    assert len(val) == 10
    again_train, again_val = spec.split(0.2, seed=1)
    assert train == again_train and val == again_val
    assert not set(train) & set(val)
    full, empty = spec.split(0.0)
    assert len(full) == 50 and len(empty) == 0


def test_register_dataset_decorator():
    @register_dataset("unit-constant")
    def _factory(**_):
        dataset = DataSet.from_arrays(np.ones((2, 1)), np.zeros((2, 1)))
        return DatasetSpec("unit-constant", dataset, "regression", {"type": "unit"})

    spec = get_dataset("unit-constant")
    assert spec.d_in == 1 and spec.d_out == 1
    with pytest.raises(TypeError):
        register_dataset()


def test_regression_metrics():
    preds = np.array([[1.0], [2.0], [3.0]])
    targs = np.array([[1.0], [2.0], [5.0]])
    metrics = compute_metrics(default_metrics("regression"), preds, targs)
    assert metrics["mae"] == pytest.approx(2.0 / 3)
    assert metrics["rmse"] == pytest.approx(np.sqrt(4.0 / 3))
    assert metrics["r2"] < 1.0


def test_binary_metrics_threshold_outputs():
    preds = np.array([[0.9], [0.2], [0.6], [0.4]])
    targs = np.array([[1.0], [0.0], [0.0], [1.0]])
    metrics = compute_metrics(default_metrics("binary"), preds, targs)
    assert metrics["accuracy"] == pytest.approx(0.5)
    assert metrics["precision"] == pytest.approx(0.5, abs=1e-6)
    assert metrics["recall"] == pytest.approx(0.5, abs=1e-6)
    with pytest.raises(KeyError):
        compute_metrics(["auc"], preds, targs)
    with pytest.raises(ValueError):
        default_metrics("multiclass")


def test_sinks_write_one_record_per_epoch(tmp_path):
    jsonl = JsonlSink(tmp_path / "m.jsonl", split="val", seed=3, sha="abc")
    sink = CsvSink(tmp_path / "m.csv", split="val")
    for epoch in (1, 2):
        jsonl.on_epoch(epoch, {"loss": 1.0 / epoch})
        sink(epoch, {"loss": 1.0 / epoch})
    records = [json.loads(line) for line in (tmp_path / "m.jsonl").read_text().splitlines()]
    assert [r["epoch"] for r in records] == [1, 2]
    assert records[0] == {"epoch": 1, "split": "val", "seed": 3, "sha": "abc", "loss": 1.0}
    with (tmp_path / "m.csv").open() as handle:
        rows = list(csv.DictReader(handle))
    assert [row["loss"] for row in rows] == ["1.0", "0.5"]


def test_sinks_tag_records_with_run_context(tmp_path):
    context = {"regime": "batch", "lr": 0.05}
    jsonl = JsonlSink(tmp_path / "m.jsonl", seed=1, sha="abc", context=context)
    sink = CsvSink(tmp_path / "m.csv", context=context)
    jsonl(1, {"loss": 0.5, "note": "skipped"})
    sink.on_epoch(1, {"loss": 0.5})
    record = json.loads((tmp_path / "m.jsonl").read_text())
    assert record == {
        "epoch": 1,
        "split": "train",
        "seed": 1,
        "sha": "abc",
        "regime": "batch",
        "lr": 0.05,
        "loss": 0.5,
    }
    with (tmp_path / "m.csv").open() as handle:
        (row,) = list(csv.DictReader(handle))
    assert row == {"epoch": "1", "loss": "0.5", "lr": "0.05", "regime": "batch", "split": "train"}
