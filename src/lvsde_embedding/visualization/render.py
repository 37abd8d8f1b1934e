from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import matplotlib.pyplot as plt
import numpy as np
from matplotlib.colors import to_rgb
from matplotlib.patches import Circle
from rich.console import Console

from ..embedding.engine import NumericalInstabilityError
from ..embedding.points import IterationSnapshot, PointVisibility

console = Console()

COLOURINGS = (0, 1, 2)
RED_LAYER_COLOUR = (0.5, 0.0, 0.0)
GRAY_LAYER_COLOUR = (0.5, 0.5, 0.5)


@dataclass
class RenderConfig:
    """Pixel geometry of the layout images."""

    canvas_size: int = 2000
    margin: int = 20
    dpi: int = 100
    red_radius: float = 15.0
    gray_radius: float = 10.0
    duplicate_marker_radius: float = 5.0
    outline_width: float = 4.0
    shuffle_seed: int = 849662123548415231

    @property
    def total_size(self) -> int:
        return self.canvas_size + 2 * self.margin


def _bounds(points: Sequence[PointVisibility]) -> Tuple[np.ndarray, np.ndarray]:
    coords = np.array([xy for point in points for xy in point.positions], dtype=np.float64).reshape(-1, 2)
    if not np.all(np.isfinite(coords)):
        raise NumericalInstabilityError("Layout contains non-finite coordinates; refusing to render it.")
    return coords.min(axis=0), coords.max(axis=0)


def _draw_order(points: Sequence[PointVisibility], colouring: int, seed: int) -> List[PointVisibility]:
    """Shuffle with a fixed seed, then draw one layer fully on top of the other.

    Colouring 2 puts the gray layer on top, the others the red (or NA) layer.
    """

    shuffled = [points[i] for i in np.random.default_rng(seed).permutation(len(points))]
    gray = [p for p in shuffled if p.layer == "gray"]
    red = [p for p in shuffled if p.layer != "gray"]
    return red + gray if colouring == 2 else gray + red


def render_snapshot(
    snapshot: IterationSnapshot | Sequence[PointVisibility],
    colours: Sequence[str],
    colouring: int,
    path: Path,
    cfg: RenderConfig | None = None,
) -> Path:
    """Write one PNG of a layout.

    Colouring 0 fills by class, red-layer points large with a black outline
    and gray-layer points smaller. Colouring 1 fills by layer. Colouring 2
    fills by class with the gray layer outlined and drawn last; the second
    projection of a split point carries a black dot.
    """

    if colouring not in COLOURINGS:
        raise ValueError(f"Unsupported colouring {colouring}; expected one of {COLOURINGS}")
    cfg = cfg or RenderConfig()
    points = list(snapshot)
    if not points:
        raise ValueError("Cannot render an empty layout.")

    low, high = _bounds(points)
    span = np.where(high - low > 0, high - low, 1.0)
    factor = float(min(cfg.canvas_size / span[0], cfg.canvas_size / span[1]))
    rgb = [to_rgb(colour) for colour in colours]
    outline = cfg.outline_width * 72.0 / cfg.dpi

    size = cfg.total_size
    fig = plt.figure(figsize=(size / cfg.dpi, size / cfg.dpi), dpi=cfg.dpi)
    ax = fig.add_axes([0, 0, 1, 1])
    ax.set_xlim(0, size)
    ax.set_ylim(size, 0)
    ax.set_aspect("equal")
    ax.axis("off")

    for point in _draw_order(points, colouring, cfg.shuffle_seed):
        in_red = point.layer != "gray"
        if colouring == 1:
            fill = RED_LAYER_COLOUR if in_red else GRAY_LAYER_COLOUR
        else:
            fill = rgb[point.class_label]
        for slot, (x, y) in enumerate(point.positions):
            centre = ((x - low[0]) * factor + cfg.margin, (y - low[1]) * factor + cfg.margin)
            if colouring == 2:
                edge = "none" if in_red else "black"
                ax.add_patch(Circle(centre, cfg.red_radius, facecolor=fill, edgecolor=edge, linewidth=outline))
                if not in_red and slot == 1:
                    ax.add_patch(Circle(centre, cfg.duplicate_marker_radius, facecolor="black", edgecolor="none"))
            elif in_red:
                ax.add_patch(Circle(centre, cfg.red_radius, facecolor=fill, edgecolor="black", linewidth=outline))
            else:
                ax.add_patch(Circle(centre, cfg.gray_radius, facecolor=fill, edgecolor="none"))

    path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(path, dpi=cfg.dpi, facecolor="white")
    plt.close(fig)
    return path


def render_colourings(
    snapshot: IterationSnapshot | Sequence[PointVisibility],
    colours: Sequence[str],
    output_dir: Path,
    prefix: str = "last_iteration",
    colourings: Sequence[int] = COLOURINGS,
    cfg: RenderConfig | None = None,
) -> Dict[int, Path]:
    paths = {}
    for colouring in colourings:
        path = output_dir / f"{prefix}_colouring_{colouring}.png"
        paths[colouring] = render_snapshot(snapshot, colours, colouring, path, cfg)
        console.print(f"[green]Saved layout image:[/] {path}")
    return paths
