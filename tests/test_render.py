"""Tests for layout images."""

import pytest

from lvsde_embedding.embedding.engine import NumericalInstabilityError
from lvsde_embedding.embedding.points import PointVisibility
from lvsde_embedding.visualization.render import RenderConfig, _draw_order, render_colourings, render_snapshot

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"


@pytest.fixture
def layout():
    return [
        PointVisibility(0, 0, ((0.0, 0.0),), "red", 1830),
        PointVisibility(1, 1, ((10.0, 5.0), (12.0, 7.0)), "gray", 1830),
        PointVisibility(2, 1, ((4.0, 9.0),), "red", 1830),
    ]


SMALL = RenderConfig(canvas_size=200, margin=10)


class TestRenderSnapshot:
    def test_writes_three_colourings(self, layout, tmp_path):
        paths = render_colourings(layout, ["#8AB9F1", "#6F4E37"], tmp_path, cfg=SMALL)
        assert sorted(paths) == [0, 1, 2]
        for path in paths.values():
            assert path.read_bytes()[:8] == PNG_MAGIC
        assert paths[2].name == "last_iteration_colouring_2.png"

    def test_unknown_colouring(self, layout, tmp_path):
        with pytest.raises(ValueError):
            render_snapshot(layout, ["#000000", "#FFFFFF"], 3, tmp_path / "x.png", SMALL)

    def test_non_finite_layout(self, tmp_path):
        broken = [PointVisibility(0, 0, ((float("nan"), 0.0),), "red", 1)]
        with pytest.raises(NumericalInstabilityError):
            render_snapshot(broken, ["#000000"], 0, tmp_path / "x.png", SMALL)


class TestDrawOrder:
    def test_red_on_top_except_colouring_two(self, layout):
        order = _draw_order(layout, 0, 1)
        assert order[0].layer == "gray"
        order = _draw_order(layout, 2, 1)
        assert order[-1].layer == "gray"

    def test_fixed_seed(self, layout):
        assert _draw_order(layout, 0, 7) == _draw_order(layout, 0, 7)
