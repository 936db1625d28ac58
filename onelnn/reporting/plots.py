"""Headless-safe plotting adapters."""

from __future__ import annotations

from pathlib import Path
from typing import List, Mapping, Tuple


class PlotAdapter:
    """Collect the running success rate and optionally plot it with matplotlib."""

    def __init__(self, run_dir: str | Path, split: str = "train", enable_plots: bool = False):
        self.enable_plots = enable_plots
        self.split = split
        self.run_dir = Path(run_dir)
        self._history: List[Tuple[int, float]] = []
        if self.enable_plots:
            self.run_dir.mkdir(parents=True, exist_ok=True)

    @property
    def plot_path(self) -> Path:
        return self.run_dir / f"success_rate_{self.split}.png"

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        if not self.enable_plots:
            return
        self._history.append((step, float(metrics.get("success_rate", 0.0))))

    def on_pass(self, metrics: Mapping[str, float]) -> None:
        self.close()

    def close(self) -> None:
        if not self.enable_plots or not self._history:
            return
        import matplotlib

        matplotlib.use("Agg", force=True)
        import matplotlib.pyplot as plt  # imported lazily for headless safety

        steps, rates = zip(*self._history)
        fig, ax = plt.subplots()
        ax.plot(steps, rates)
        ax.set_xlabel("Samples")
        ax.set_ylabel("Success rate (%)")
        ax.set_title(f"Running success rate ({self.split})")
        fig.savefig(self.plot_path)
        plt.close(fig)


__all__ = ["PlotAdapter"]
