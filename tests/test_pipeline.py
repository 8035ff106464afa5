import json
from pathlib import Path

import pytest

from neuralgraph.training import pipelines


def _config(name: str, run_dir: Path, **train) -> dict:
    config = json.loads(json.dumps(pipelines.load_preset(name)))
    config["train"]["run_dir"] = str(run_dir)
    config["train"].update(train)
    return config


def test_pipeline_produces_artifacts(tmp_path):
    config = _config("and-online", tmp_path / "run", epochs=5, dump_nodes=True)
    result = pipelines.run_pipeline(config)

    assert result.steps == 20
    metrics = [json.loads(line) for line in Path(result.metrics_path).read_text().splitlines()]
    assert len(metrics) == 5
    assert metrics[0]["split"] == "train"
    assert all({"loss", "accuracy", "sha", "seed"} <= set(entry) for entry in metrics)
    assert metrics[0]["regime"] == "online"
    assert metrics[0]["lr"] == 0.1
    assert metrics[0]["optimizer"] == "gd"
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["dataset"]["name"] == "and"
    assert manifest["model"]["layer_dims"] == [2, 1]
    assert manifest["model"]["activations"] == [["identity"]]
    assert manifest["model"]["parameters"] == 3
    assert manifest["result"]["steps"] == 20
    assert (tmp_path / "run" / "config.json").exists()
    assert (tmp_path / "run" / "metrics_train.csv").exists()
    assert "Output(1,0)" in (tmp_path / "run" / "nodes.txt").read_text()


def test_pipeline_determinism(tmp_path):
    first = pipelines.run_pipeline(_config("line-regression", tmp_path / "a", epochs=3))
    second = pipelines.run_pipeline(_config("line-regression", tmp_path / "b", epochs=3))
    assert Path(first.metrics_path).read_text() == Path(second.metrics_path).read_text()
    assert first.final_loss == second.final_loss


def test_xor_preset_learns(tmp_path):
    result = pipelines.run_pipeline(_config("xor-sigmoid-bce", tmp_path / "xor"))
    losses = [entry["loss"] for entry in result.history if entry["split"] == "train"]
    assert losses[-1] < losses[0]


def test_validation_split_writes_val_metrics(tmp_path):
    config = _config("line-regression", tmp_path / "val", epochs=2, val_split=0.2)
    result = pipelines.run_pipeline(config)
    assert (tmp_path / "val" / "metrics_val.jsonl").exists()
    assert {entry["split"] for entry in result.history} == {"train", "val"}


def test_file_presets_are_listed(tmp_path):
    assert "or-minus-one-tanh" in pipelines.presets()
    result = pipelines.run_pipeline(_config("or-minus-one-tanh", tmp_path / "or", epochs=2))
    assert result.steps == 8


def test_yaml_preset_override(tmp_path, monkeypatch):
    yaml = pytest.importorskip("yaml")
    preset_dir = tmp_path / "presets"
    preset_dir.mkdir()
    config = pipelines.load_preset("and-online")
    config["train"]["epochs"] = 1
    (preset_dir / "and-online.yaml").write_text(yaml.safe_dump(dict(config)))
    monkeypatch.setattr(pipelines, "_PRESET_DIR", preset_dir)
    monkeypatch.setattr(pipelines, "_FILE_PRESETS_CACHE", None)
    assert pipelines.load_preset("and-online")["train"]["epochs"] == 1


def test_unknown_preset():
    with pytest.raises(KeyError):
        pipelines.load_preset("mnist-flip-det")


def test_adam_is_selectable_from_config(tmp_path):
    config = _config("line-regression", tmp_path / "adam", epochs=3, optimizer="adam", lr=0.05)
    result = pipelines.run_pipeline(config)
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["optimizer"] == "adam"
    losses = [entry["loss"] for entry in result.history if entry["split"] == "train"]
    assert losses[-1] < losses[0]


def test_unknown_optimizer_is_rejected(tmp_path):
    with pytest.raises(KeyError):
        pipelines.run_pipeline(_config("and-online", tmp_path / "bad", optimizer="lbfgs"))
