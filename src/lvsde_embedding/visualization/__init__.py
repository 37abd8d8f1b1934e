"""Visualization utilities (baseline manifolds, layout images)."""

from .manifold import ManifoldConfig, compute_baselines, plot_baseline, reduce_to_thirty_dimensions  # noqa: F401
from .render import RenderConfig, render_colourings, render_snapshot  # noqa: F401

__all__ = [
    "ManifoldConfig",
    "compute_baselines",
    "plot_baseline",
    "reduce_to_thirty_dimensions",
    "RenderConfig",
    "render_colourings",
    "render_snapshot",
]
