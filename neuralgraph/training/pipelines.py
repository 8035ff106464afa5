"""Config driven runs: dataset, network, loss, optimizer and trainer assembly."""

from __future__ import annotations

import dataclasses
import json
import logging
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, Mapping, Sequence

from ..core import activations, initializers
from ..core.network import NeuralNetwork, multilayer_perceptron
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_config, write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from .losses import REGISTRY as LOSS_REGISTRY
from .optimizers import get_optimizer
from .trainer import Trainer

logger = logging.getLogger(__name__)

_PRESETS: Dict[str, Mapping[str, object]] = {
    "and-online": {
        "data": {"name": "and", "options": {}},
        "model": {
            "hidden": [],
            "output_activation": "identity",
            "initializer": "constant",
            "init_value": 0.0,
        },
        "train": {
            "epochs": 50,
            "regime": "online",
            "lr": 0.1,
            "loss": "mse",
            "metrics": ["accuracy"],
            "seed": 0,
            "run_dir": "runs/and-online",
        },
    },
    "xor-sigmoid-bce": {
        "data": {"name": "xor", "options": {}},
        "model": {
            "hidden": [4],
            "hidden_activation": "tanh",
            "output_activation": "sigmoid",
            "initializer": "xavier",
        },
        "train": {
            "epochs": 300,
            "regime": "online",
            "lr": 0.5,
            "loss": "bce",
            "metrics": "default",
            "seed": 3,
            "run_dir": "runs/xor-sigmoid-bce",
        },
    },
    "line-regression": {
        "data": {
            "name": "line",
            "options": {"n_points": 100, "slope": 3.0, "intercept": 7.0, "seed": 0},
        },
        "model": {
            "hidden": [],
            "output_activation": "identity",
            "initializer": "uniform",
        },
        "train": {
            "epochs": 20,
            "regime": "mini_batch",
            "batch_size": 10,
            "lr": 1e-4,
            "loss": "auto",
            "metrics": "default",
            "seed": 0,
            "shuffle": True,
            "early_stopping_patience": 5,
            "min_improvement": 1e-6,
            "run_dir": "runs/line-regression",
        },
    },
}

_PRESET_DIR = Path(__file__).resolve().parents[2] / "configs" / "presets"
_FILE_PRESETS_CACHE: Dict[str, Mapping[str, object]] | None = None


def _read_preset_file(path: Path) -> Mapping[str, object]:
    text = path.read_text()
    suffix = path.suffix.lower()
    if suffix in {".yaml", ".yml"}:
        try:
            import yaml  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load preset files in YAML format") from exc
        data = yaml.safe_load(text) or {}
    elif suffix == ".json":
        data = json.loads(text or "{}")
    else:
        raise ValueError(f"Unsupported preset file type: {path.suffix}")

    if not isinstance(data, Mapping):
        raise TypeError(f"Preset {path.name} must decode to a mapping")
    return data


def _file_presets() -> Dict[str, Mapping[str, object]]:
    global _FILE_PRESETS_CACHE
    if _FILE_PRESETS_CACHE is None:
        presets: Dict[str, Mapping[str, object]] = {}
        if _PRESET_DIR.exists():
            for file in sorted(_PRESET_DIR.iterdir()):
                if file.suffix.lower() not in {".yaml", ".yml", ".json"}:
                    continue
                data = _read_preset_file(file)
                missing = {"data", "model", "train"} - set(data)
                if missing:
                    missing_str = ", ".join(sorted(missing))
                    raise KeyError(
                        f"Preset {file.name} is missing required sections: {missing_str}"
                    )
                presets[file.stem] = json.loads(json.dumps(data))
        _FILE_PRESETS_CACHE = presets
    return {name: deepcopy(cfg) for name, cfg in _FILE_PRESETS_CACHE.items()}


def presets() -> Mapping[str, Mapping[str, object]]:
    combined: Dict[str, Mapping[str, object]] = {}
    combined.update({name: deepcopy(cfg) for name, cfg in _PRESETS.items()})
    combined.update(_file_presets())
    return combined


def load_preset(name: str) -> Mapping[str, object]:
    file_overrides = _file_presets()
    if name in file_overrides:
        return file_overrides[name]
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def build_network(model_cfg: Mapping[str, object], d_in: int, d_out: int) -> NeuralNetwork:
    """Build and initialize the multilayer perceptron described by ``model_cfg``."""

    dims = [d_in, *(int(h) for h in model_cfg.get("hidden", []) or []), d_out]
    network = multilayer_perceptron(
        dims,
        hidden_activation=activations.get(str(model_cfg.get("hidden_activation", "relu"))),
        output_activation=activations.get(str(model_cfg.get("output_activation", "identity"))),
    )
    network.init(
        initializers.get(
            str(model_cfg.get("initializer", "xavier")),
            seed=model_cfg.get("init_seed"),
            value=float(model_cfg.get("init_value", 0.0)),
        )
    )
    return network


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    data_cfg = dict(config["data"])
    model_cfg = dict(config["model"])
    train_cfg = dict(config["train"])

    options = dict(data_cfg.get("options", {}) or {})
    spec = registry.get_dataset(str(data_cfg["name"]), **options)
    seed = int(train_cfg.get("seed", 0))
    model_cfg.setdefault("init_seed", seed)

    val_split = float(train_cfg.get("val_split", 0.0))
    train_set, val_set = spec.split(val_split, seed=seed)

    network = build_network(model_cfg, spec.d_in, spec.d_out)
    loss_name = str(train_cfg.get("loss", "auto"))
    loss = LOSS_REGISTRY.resolve(loss_name, task_type=spec.task_type)
    optimizer_name = str(train_cfg.get("optimizer", "gd"))
    hyperparameters = {"learning_rate": float(train_cfg.get("lr", 0.1))}
    for key in ("beta1", "beta2", "epsilon"):
        if key in train_cfg:
            hyperparameters[key] = float(train_cfg[key])
    optimizer = get_optimizer(optimizer_name, loss, **hyperparameters)

    metrics_cfg = train_cfg.get("metrics", "default")
    if isinstance(metrics_cfg, str):
        metrics_list = metrics_cfg
    else:
        metrics_list = ",".join(str(item) for item in metrics_cfg)

    run_dir = _resolve_run_dir(train_cfg, spec.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    description = network.describe()
    dims = description.layer_dims
    regime = str(train_cfg.get("regime", "online"))
    _print_startup_summary(
        dataset_name=spec.name,
        dims=dims,
        loss=loss_name,
        optimizer=optimizer_name,
        metrics=metrics_list,
        regime=regime,
        param_count=description.parameters,
    )

    context = {
        "regime": regime,
        "optimizer": optimizer_name,
        "lr": hyperparameters["learning_rate"],
    }
    splits = ["train", "val"] if len(val_set) else ["train"]
    split_loggers = {
        split: [
            JsonlSink(run_dir / f"metrics_{split}.jsonl", split=split, seed=seed, context=context),
            CsvSink(run_dir / f"metrics_{split}.csv", split=split, context=context),
        ]
        for split in splits
    }

    early_stopping = train_cfg.get("early_stopping_patience")
    batch_size = train_cfg.get("batch_size")
    trainer = Trainer(network, optimizer)
    result = trainer.run(
        train_set,
        int(train_cfg.get("epochs", 1)),
        regime=regime,
        batch_size=int(batch_size) if batch_size is not None else None,
        val_set=val_set if len(val_set) else None,
        task_type=spec.task_type,
        metric_names=metrics_list,
        eval_every=int(train_cfg.get("eval_every", 1)),
        split_loggers=split_loggers,
        early_stopping_patience=int(early_stopping) if early_stopping is not None else None,
        min_improvement=float(train_cfg.get("min_improvement", 0.0)),
        shuffle=bool(train_cfg.get("shuffle", False)),
        seed=seed,
    )

    if train_cfg.get("dump_nodes"):
        (run_dir / "nodes.txt").write_text(network.dump_node_outputs() + "\n")

    safe_config = json.loads(json.dumps(config))
    write_config(run_dir / "config.json", safe_config)
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance={"name": spec.name, "task_type": spec.task_type, **spec.provenance},
        model=description.to_dict(),
        result={"steps": result.steps, "epochs": result.epochs, "final_loss": result.final_loss},
    )
    logger.info("Run artifacts written to %s", run_dir)

    return dataclasses.replace(
        result,
        metrics_path=str(run_dir / "metrics_train.jsonl"),
        manifest_path=manifest,
    )


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if "run_dir" in train_cfg:
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    dims: Sequence[int],
    loss: str,
    optimizer: str,
    metrics: str,
    regime: str,
    param_count: int,
) -> None:
    print("=== neuralgraph run ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Dimensions    : {dims}")
    print(f"Loss          : {loss}")
    print(f"Optimizer     : {optimizer}")
    print(f"Metrics       : {metrics}")
    print(f"Regime        : {regime}")
    print(f"Parameters    : {param_count}")
    print("=======================")


__all__ = ["build_network", "load_preset", "presets", "run_pipeline"]
