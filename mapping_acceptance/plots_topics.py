from __future__ import annotations

from typing import Dict, Optional, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config import QUADRANT_SIDES, DimensionTable, dimension_label, dimension_names, inverted_dimensions

QUADRANT_POSITIONS: Dict[str, Tuple[float, float, str, str]] = {
    "upper_left": (-0.95, 0.95, "left", "top"),
    "upper_right": (0.95, 0.95, "right", "top"),
    "lower_left": (-0.95, -0.95, "left", "bottom"),
    "lower_right": (0.95, -0.95, "right", "bottom"),
}


def _side_text(name: str, side: int, inverted: bool) -> str:
    # an inverted axis reads "high" on its negative side
    high = (side > 0) != inverted
    return f"{'high' if high else 'low'} {name.replace('_', ' ')}"


def default_quadrant_labels(x_dim: str, y_dim: str, dimensions: Optional[DimensionTable] = None) -> Dict[str, str]:
    inverted = inverted_dimensions(dimensions)
    return {
        key: f"{_side_text(x_dim, sx, x_dim in inverted)},\n{_side_text(y_dim, sy, y_dim in inverted)}"
        for key, (sx, sy) in QUADRANT_SIDES.items()
    }


def topic_points(topic_df: pd.DataFrame, x_dim: str, y_dim: str) -> pd.DataFrame:
    cols = ["topic_id", f"mean_{x_dim}", f"mean_{y_dim}"]
    missing = [c for c in cols if c not in topic_df.columns]
    if missing:
        raise ValueError(f"Topic factor table lacks columns {missing}.")
    points = topic_df.dropna(subset=cols[1:]).copy()
    short = points["short_label"] if "short_label" in points.columns else pd.Series(index=points.index, dtype=object)
    points["annotation"] = [
        str(s) if s is not None and not pd.isna(s) else str(t)
        for s, t in zip(short, points["topic_id"])
    ]
    points = points.rename(columns={f"mean_{x_dim}": "x", f"mean_{y_dim}": "y"})
    return points[["topic_id", "x", "y", "annotation"]].reset_index(drop=True)


def plot_topic_map(
    topic_df: pd.DataFrame,
    x_dim: Optional[str] = None,
    y_dim: Optional[str] = None,
    dimensions: Optional[DimensionTable] = None,
    title: Optional[str] = None,
    quadrant_labels: Optional[Dict[str, str]] = None,
) -> plt.Figure:
    names = dimension_names(dimensions)
    if len(names) < 2 and (x_dim is None or y_dim is None):
        raise ValueError("A topic map needs two dimensions.")
    x_dim = x_dim or names[0]
    y_dim = y_dim or names[1]
    points = topic_points(topic_df, x_dim, y_dim)
    quadrants = quadrant_labels or default_quadrant_labels(x_dim, y_dim, dimensions)

    fig, ax = plt.subplots(figsize=(6, 6))
    ax.axhline(0, color="#999999", linewidth=0.8)
    ax.axvline(0, color="#999999", linewidth=0.8)
    # exact inverse relation between the two dimensions
    ax.plot([-1, 1], [1, -1], color="#999999", linewidth=0.8, linestyle="--")

    for key, text in quadrants.items():
        if key not in QUADRANT_POSITIONS:
            continue
        qx, qy, ha, va = QUADRANT_POSITIONS[key]
        ax.text(qx, qy, text, ha=ha, va=va, fontsize=8, color="#666666", style="italic")

    ax.scatter(points["x"], points["y"], color="#2171b5", s=22, zorder=3)
    for _, row in points.iterrows():
        ax.annotate(
            row["annotation"],
            (row["x"], row["y"]),
            xytext=(3, 3),
            textcoords="offset points",
            fontsize=7,
        )

    ax.set_xlim(-1, 1)
    ax.set_ylim(-1, 1)
    ax.set_aspect("equal")
    ax.set_xticks(np.linspace(-1, 1, 5))
    ax.set_yticks(np.linspace(-1, 1, 5))
    ax.set_xlabel(dimension_label(x_dim, dimensions))
    ax.set_ylabel(dimension_label(y_dim, dimensions))
    if title:
        ax.set_title(title, fontsize=11)
    fig.tight_layout()
    return fig
