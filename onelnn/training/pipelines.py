"""Pipeline assembly: dataset, layer, training pass, evaluation pass, artifacts."""

from __future__ import annotations

import json
import time
from copy import deepcopy
from pathlib import Path
from typing import Dict, List, Mapping

from ..core.layer import Layer
from ..core.types import RunResult
from ..data import registry
from ..reporting.artifacts import write_manifest
from ..reporting.metrics import CsvSink, JsonlSink
from ..reporting.plots import PlotAdapter
from ..reporting.progress import ProgressPrinter
from ..reporting.summary import write_summary
from .drivers import evaluate_layer, train_layer

LEARNING_RATE = 0.05

_PRESETS: Dict[str, Mapping[str, object]] = {
    "mnist-1lnn": {
        "offline": False,
        "data": {"name": "mnist", "options": {}},
        "model": {"n_inputs": 784, "n_outputs": 10, "seed": None, "workers": 1},
        "train": {
            "learning_rate": LEARNING_RATE,
            "train_samples": None,
            "test_samples": None,
            "report_every": 5000,
            "run_dir": "runs/mnist-1lnn",
            "enable_plots": False,
        },
    },
    "mnist-offline": {
        "offline": True,
        "data": {"name": "mnist", "options": {}},
        "model": {"n_inputs": 784, "n_outputs": 10, "seed": 0, "workers": 1},
        "train": {
            "learning_rate": LEARNING_RATE,
            "train_samples": None,
            "test_samples": None,
            "report_every": 100,
            "run_dir": "runs/mnist-offline",
            "enable_plots": False,
        },
    },
    "synthetic-min": {
        "offline": True,
        "data": {
            "name": "synthetic",
            "options": {"train_size": 500, "test_size": 100, "seed": 0},
        },
        "model": {"seed": 7, "workers": 1},
        "train": {
            "learning_rate": LEARNING_RATE,
            "train_samples": None,
            "test_samples": None,
            "report_every": 100,
            "run_dir": "runs/synthetic-min",
            "enable_plots": False,
        },
    },
}


def presets() -> Mapping[str, Mapping[str, object]]:
    return {name: deepcopy(cfg) for name, cfg in _PRESETS.items()}


def load_preset(name: str) -> Mapping[str, object]:
    try:
        return deepcopy(_PRESETS[name])
    except KeyError as exc:
        raise KeyError(f"Unknown preset: {name}") from exc


def run_pipeline(config: Mapping[str, object]) -> RunResult:
    """Train a fresh layer on the train split, then evaluate it on the test split."""

    data_cfg = dict(config["data"])
    model_cfg = dict(config.get("model", {}))
    train_cfg = dict(config.get("train", {}))

    offline = config.get("offline")
    dataset = registry.get_dataset(
        str(data_cfg["name"]),
        offline=None if offline is None else bool(offline),
        cache_dir=train_cfg.get("cache_dir"),
        **data_cfg.get("options", {}),
    )
    data_spec = dataset.data_spec

    n_inputs = int(model_cfg.get("n_inputs") or data_spec.n_inputs)
    n_outputs = int(model_cfg.get("n_outputs") or data_spec.n_outputs)
    if n_inputs != data_spec.n_inputs:
        raise ValueError(
            f"Configured n_inputs={n_inputs} but dataset has {data_spec.n_inputs}"
        )
    if n_outputs != data_spec.n_outputs:
        raise ValueError(
            f"Configured n_outputs={n_outputs} but dataset has {data_spec.n_outputs}"
        )

    counts = _resolve_counts(dataset.splits, train_cfg)
    learning_rate = float(train_cfg.get("learning_rate", LEARNING_RATE))
    report_every = int(train_cfg.get("report_every") or 0)
    show_progress = bool(train_cfg.get("progress", True))
    enable_plots = bool(train_cfg.get("enable_plots", False))
    seed = model_cfg.get("seed")

    run_dir = _resolve_run_dir(train_cfg, dataset.name)
    run_dir.mkdir(parents=True, exist_ok=True)

    layer = Layer(
        n_inputs=n_inputs,
        n_outputs=n_outputs,
        seed=None if seed is None else int(seed),
        workers=int(model_cfg.get("workers", 1)),
    )
    effective_seed = layer.effective_seed

    if show_progress:
        _print_startup_summary(
            dataset_name=dataset.name,
            n_inputs=n_inputs,
            n_outputs=n_outputs,
            learning_rate=learning_rate,
            counts=counts,
            seed=effective_seed,
            workers=layer.workers,
            parameters=layer.parameter_count(),
        )

    sinks: Dict[str, List[object]] = {}
    jsonl_paths: Dict[str, str] = {}
    for split in ("train", "test"):
        jsonl = JsonlSink(run_dir / f"metrics_{split}.jsonl", split=split, seed=effective_seed)
        jsonl_paths[split] = str(jsonl.path)
        sinks[split] = [
            jsonl,
            CsvSink(run_dir / f"metrics_{split}.csv", split=split),
            PlotAdapter(run_dir, split=split, enable_plots=enable_plots),
        ]
        if show_progress:
            sinks[split].append(ProgressPrinter(split, total=counts[split]))

    # Both streams are opened up front so a missing file aborts before any pass.
    with layer, dataset.open("train") as train_stream, dataset.open("test") as test_stream:
        train_stats = train_layer(
            layer,
            train_stream,
            counts["train"],
            learning_rate,
            callbacks=sinks["train"],
            report_every=report_every,
        )
        test_stats = evaluate_layer(
            layer,
            test_stream,
            counts["test"],
            callbacks=sinks["test"],
            report_every=report_every,
        )

    safe_config = json.loads(json.dumps(config))
    manifest = write_manifest(
        run_dir / "manifest.json",
        config=safe_config,
        dataset_provenance=dataset.provenance,
        seed=effective_seed,
        results={"train": train_stats.as_dict(), "test": test_stats.as_dict()},
    )
    summary_path = write_summary(
        jsonl_paths, run_dir / "summary.json", tail=int(train_cfg.get("summary_tail", 32))
    )
    (run_dir / "config.json").write_text(json.dumps(safe_config, indent=2))

    return RunResult(
        train=train_stats,
        test=test_stats,
        seed=effective_seed,
        metrics_path=jsonl_paths["train"],
        manifest_path=manifest,
        summary_path=summary_path,
        splits=jsonl_paths,
    )


def _resolve_counts(
    split_sizes: Mapping[str, int], train_cfg: Mapping[str, object]
) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for split in ("train", "test"):
        available = int(split_sizes.get(split, 0))
        requested = train_cfg.get(f"{split}_samples")
        count = available if requested is None else int(requested)
        if count < 1:
            raise ValueError(f"{split} pass needs at least one sample, got {count}")
        if count > available:
            raise ValueError(
                f"Requested {count} {split} samples but the split holds {available}"
            )
        counts[split] = count
    return counts


def _resolve_run_dir(train_cfg: Mapping[str, object], dataset: str) -> Path:
    if train_cfg.get("run_dir"):
        return Path(str(train_cfg["run_dir"]))
    timestamp = time.strftime("%Y%m%d-%H%M%S")
    return Path("runs") / timestamp / dataset


def _print_startup_summary(
    *,
    dataset_name: str,
    n_inputs: int,
    n_outputs: int,
    learning_rate: float,
    counts: Mapping[str, int],
    seed: int,
    workers: int,
    parameters: int,
) -> None:
    print("=== onelnn: 1-layer network ===")
    print(f"Dataset       : {dataset_name}")
    print(f"Cells         : {n_outputs} x {n_inputs} inputs")
    print(f"Parameters    : {parameters}")
    print(f"Learning rate : {learning_rate}")
    print(f"Samples       : train={counts['train']} test={counts['test']}")
    print(f"Seed          : {seed}")
    print(f"Workers       : {workers}")
    print("===============================")


__all__ = ["LEARNING_RATE", "load_preset", "presets", "run_pipeline"]
