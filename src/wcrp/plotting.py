"""Visualization of WCRP sampler traces."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Optional, Sequence

import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns

if TYPE_CHECKING:
    from .sampler import IterationStats

# Seaborn styling
sns.set_theme(style="whitegrid", palette="deep")


def history_frame(history: Sequence[IterationStats]) -> pd.DataFrame:
    return pd.DataFrame(
        {
            "iteration": [h.iteration for h in history],
            "train_ll": [h.train_ll for h in history],
            "num_skills": [h.num_skills for h in history],
            "beta": [h.beta for h in history],
            "alpha_prime": [h.alpha_prime for h in history],
        }
    )


def plot_trace(
    history: Sequence[IterationStats],
    output_path: Path,
    title: str = "",
    burn: Optional[int] = None,
) -> None:
    """Plot training log likelihood and number of skills per sweep.

    Args:
        history: Per-sweep diagnostics from MixtureWCRP.run.
        output_path: Path to save the plot.
        title: Title for the figure.
        burn: If given, marks the end of burn-in.
    """
    df = history_frame(history)
    if df.empty:
        return

    fig, axes = plt.subplots(2, 1, figsize=(10, 8), sharex=True)

    axes[0].plot(df["iteration"], df["train_ll"], linewidth=2, color="#1f77b4")
    axes[0].set_ylabel("Training Log Likelihood", fontsize=12)

    axes[1].step(df["iteration"], df["num_skills"], where="post", linewidth=2, color="#ff7f0e")
    axes[1].set_ylabel("Number of Skills", fontsize=12)
    axes[1].set_xlabel("Iteration", fontsize=12)

    if burn is not None:
        for ax in axes:
            ax.axvline(burn, color="k", linestyle="--", linewidth=1, label="End of burn-in")
        axes[0].legend(loc="lower right", fontsize=10)

    fig.suptitle(f"WCRP Sampler Trace{title}", fontsize=14)

    plt.tight_layout()
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150)
    plt.close(fig)
