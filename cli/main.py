"""Command line entry point: train a 1-layer network, then test it."""

from __future__ import annotations

import argparse
import json
import os
import time
from pathlib import Path
from typing import Iterable

from onelnn.core.types import RunResult
from onelnn.training import pipelines


def _format_result(result: RunResult) -> str:
    payload = {
        "seed": result.seed,
        "train": result.train.as_dict(),
        "test": result.test.as_dict(),
        "metrics": result.metrics_path,
        "manifest": result.manifest_path,
        "summary": result.summary_path,
    }
    return json.dumps(payload, sort_keys=True)


def parse_args(argv: Iterable[str] | None = None) -> argparse.Namespace:
    preset_names = sorted(pipelines.presets().keys())
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--preset",
        choices=preset_names,
        default="mnist-offline",
        help="Preset configuration to execute",
    )
    parser.add_argument(
        "--config", type=Path, help="Optional JSON/YAML config override"
    )
    parser.add_argument(
        "--offline",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Use offline dataset fixtures instead of downloading",
    )
    parser.add_argument(
        "--dataset",
        choices=["mnist", "synthetic"],
        help="Override the dataset used by the run",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        help="Directory holding the MNIST IDX files (skips the download cache)",
    )
    parser.add_argument("--seed", type=int, help="Seed for weight initialisation")
    parser.add_argument("--learning-rate", type=float, help="Weight update step size")
    parser.add_argument("--train-samples", type=int, help="Samples in the training pass")
    parser.add_argument("--test-samples", type=int, help="Samples in the testing pass")
    parser.add_argument(
        "--workers", type=int, help="Threads used to compute cells in parallel"
    )
    parser.add_argument(
        "--report-every", type=int, help="Report progress every N samples (0 = off)"
    )
    parser.add_argument("--run-dir", type=Path, help="Directory for run artifacts")
    parser.add_argument(
        "--enable-plots", action="store_true", help="Plot the running success rate"
    )
    parser.add_argument(
        "--quiet", action="store_true", help="Only print the final JSON result"
    )
    parser.add_argument(
        "--list-presets", action="store_true", help="List available presets and exit"
    )
    parser.add_argument(
        "--dump-config", type=Path, help="Dump the resolved config to a JSON file"
    )
    return parser.parse_args(argv)


def _load_override(path: Path) -> dict:
    text = path.read_text()
    if path.suffix in {".yml", ".yaml"}:
        try:
            import yaml  # type: ignore
        except Exception as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("PyYAML is required to load YAML configs") from exc
        return yaml.safe_load(text) or {}
    return json.loads(text)


def _merge(base: dict, override: dict) -> dict:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _merge(dict(base[key]), value)
        else:
            base[key] = value
    return base


# Flags copied into the config verbatim when given: (section, key).
_FLAG_TARGETS = {
    "seed": ("model", "seed"),
    "workers": ("model", "workers"),
    "learning_rate": ("train", "learning_rate"),
    "train_samples": ("train", "train_samples"),
    "test_samples": ("train", "test_samples"),
    "report_every": ("train", "report_every"),
}


def resolve_config(args: argparse.Namespace) -> dict:
    """Preset, then ``--config`` override, then individual flags."""

    config = json.loads(json.dumps(pipelines.load_preset(args.preset)))
    if args.config:
        config = _merge(config, _load_override(args.config))

    if args.dataset and args.dataset != config.get("data", {}).get("name"):
        # Layer dimensions follow the new dataset.
        config["data"] = {"name": args.dataset, "options": {}}
        config.setdefault("model", {}).update({"n_inputs": None, "n_outputs": None})
    if args.data_dir is not None:
        options = config.setdefault("data", {}).setdefault("options", {})
        options["data_dir"] = str(args.data_dir)
    if args.offline is not None:
        config["offline"] = bool(args.offline)

    for flag, (section, key) in _FLAG_TARGETS.items():
        value = getattr(args, flag)
        if value is not None:
            config.setdefault(section, {})[key] = value

    train_cfg = config.setdefault("train", {})
    if args.run_dir is not None:
        train_cfg["run_dir"] = str(args.run_dir)
    if args.enable_plots:
        train_cfg["enable_plots"] = True
    if args.quiet:
        train_cfg["progress"] = False
    return config


def main(argv: Iterable[str] | None = None) -> None:
    args = parse_args(argv)

    if args.list_presets:
        for name in sorted(pipelines.presets().keys()):
            print(name)
        raise SystemExit(0)

    config = resolve_config(args)
    if "offline" in config and config["offline"] is not None:
        os.environ["ONELNN_DATA_OFFLINE"] = "1" if config["offline"] else "0"

    if args.dump_config:
        args.dump_config.parent.mkdir(parents=True, exist_ok=True)
        args.dump_config.write_text(json.dumps(config, indent=2))

    start = time.perf_counter()
    result = pipelines.run_pipeline(config)
    if not args.quiet:
        print(f"DONE! Total execution time: {time.perf_counter() - start:.1f} sec")
    print(_format_result(result))


if __name__ == "__main__":
    main()
