from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

import numpy as np  # type: ignore
import matplotlib
matplotlib.use("Agg")  # headless-safe backend; figures are built, not shown
import matplotlib.pyplot as plt  # type: ignore

from .attention import Heatmap, RegionAttention, TimelineBucket
from .error_metrics import PointError


def fig_heatmap(heatmap: Heatmap, frame_size: Tuple[int, int]):
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.set_title(f"Gaze Heatmap ({heatmap.count} points)")
    im = ax.imshow(
        heatmap.grid,
        cmap="hot",
        origin="upper",
        interpolation="bilinear",
        extent=(0, frame_size[0], frame_size[1], 0),
        vmin=0.0,
        vmax=1.0,
    )
    fig.colorbar(im, ax=ax, label="Relative density")
    ax.set_xlabel("X (px)")
    ax.set_ylabel("Y (px)")
    fig.tight_layout()
    return fig


def fig_timeline(timeline: Sequence[TimelineBucket], high_pct: float = 70.0):
    fig, ax = plt.subplots(figsize=(8, 3))
    ax.set_title("Attention Over Time")
    if timeline:
        t = np.array([b.time for b in timeline], dtype=float)
        v = np.array([b.intensity for b in timeline], dtype=float)
        ax.fill_between(t, v, step="post", color="orangered", alpha=0.35)
        ax.step(t, v, where="post", color="orangered", linewidth=1.5)
    ax.axhline(high_pct, color="gray", linestyle="--", linewidth=1, label=f"{int(high_pct)}%")
    ax.set_ylim(0, 100)
    ax.set_xlabel("Time (s)")
    ax.set_ylabel("Intensity (%)")
    ax.legend(loc="upper right")
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig


def fig_quadrants(quadrants: Dict[str, float]):
    fig, ax = plt.subplots(figsize=(4, 4))
    ax.set_title("Quadrant Split")
    labels = list(quadrants.keys())
    values = [max(0.0, float(v)) for v in quadrants.values()]
    if sum(values) > 0:
        ax.pie(values, labels=labels, autopct="%1.1f%%", startangle=90,
               colors=["#ff6040", "#ffb420", "#40c0ff", "#60ff8c"])
    else:
        ax.text(0.5, 0.5, "No gaze data", ha="center", va="center")
        ax.axis("off")
    fig.tight_layout()
    return fig


def fig_regions(regions: List[RegionAttention], grid_size: int = 4):
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.set_title("Region Attention (%)")
    grid = np.zeros((grid_size, grid_size), dtype=float)
    for r in regions:
        grid[r.row, r.col] = r.attention
    im = ax.imshow(grid, cmap="hot", origin="upper", interpolation="nearest")
    for r in regions:
        ax.text(r.col, r.row, f"{r.short}\n{r.attention:.1f}", ha="center", va="center", fontsize=8, color="cyan")
    fig.colorbar(im, ax=ax, label="% of gaze")
    ax.set_xticks([])
    ax.set_yticks([])
    fig.tight_layout()
    return fig


def fig_verification(errors: List[PointError]):
    fig, ax = plt.subplots(figsize=(6, 4))
    ax.set_title("Verification Error")
    for e in errors:
        ax.scatter([e.true_xy[0]], [e.true_xy[1]], c="green")
        ax.scatter([e.pred_xy[0]], [e.pred_xy[1]], c="red")
        ax.plot([e.true_xy[0], e.pred_xy[0]], [e.true_xy[1], e.pred_xy[1]], c="orange", linewidth=1)
        ax.text(e.pred_xy[0], e.pred_xy[1], f"{int(round(e.dist_px))} px", fontsize=8, color="orange")
    ax.set_xlabel("X (px)")
    ax.set_ylabel("Y (px)")
    ax.invert_yaxis()  # screen coordinates origin top-left
    ax.grid(True, alpha=0.3)
    fig.tight_layout()
    return fig
