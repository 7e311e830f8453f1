from __future__ import annotations

from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt

SIZE_PRESETS = {
    "single": (3.35, 3.35),
    "double": (6.9, 6.9),
    "table": (6.9, 4.2),
}

VECTOR_FORMATS: Tuple[str, ...] = ("svg", "pdf")


def apply_size(fig: plt.Figure, size_key: Optional[str], scale: Tuple[float, float] = (1.0, 1.0)) -> None:
    if size_key is None:
        return
    size = SIZE_PRESETS.get(size_key, SIZE_PRESETS["double"])
    fig.set_size_inches(size[0] * scale[0], size[1] * scale[1])


def save_figure(
    fig: plt.Figure,
    out_base: str,
    size_key: Optional[str] = "double",
    formats: Sequence[str] = VECTOR_FORMATS,
    make_png: bool = True,
    size_scale: Tuple[float, float] = (1.0, 1.0),
    bbox_inches: Optional[str] = "tight",
) -> List[str]:
    apply_size(fig, size_key, size_scale)
    base = Path(out_base)
    base.parent.mkdir(parents=True, exist_ok=True)

    paths: List[str] = []
    for fmt in formats:
        path = str(base.with_suffix(f".{fmt}"))
        fig.savefig(path, bbox_inches=bbox_inches)
        paths.append(path)
    if make_png:
        png_path = str(base.with_suffix(".png"))
        fig.savefig(png_path, dpi=300, bbox_inches=bbox_inches)
        paths.append(png_path)
    return paths
