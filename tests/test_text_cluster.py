"""Unit tests for CentralTextClusterDetector and the text grid."""
import threading

import numpy as np
import pytest

from core.text_cluster import CentralTextClusterDetector, ClusterParameters
from core.text_grid import TextGrid
from domain.models import Rect, TextObservation
from utils.geometry import round_half_away


class TestCentralTextClusterDetector:
    """Test suite for the central cluster detection."""

    def test_empty_grid_gives_none(self):
        assert CentralTextClusterDetector(np.zeros((60, 60), dtype=bool)).detect() is None
        assert CentralTextClusterDetector([]).detect() is None

    def test_single_central_cell(self):
        grid = np.zeros((100, 100), dtype=bool)
        grid[50, 50] = True

        quad = CentralTextClusterDetector(grid).detect()

        assert quad.top_left.x == pytest.approx(0.49)
        assert quad.top_right.x == pytest.approx(0.51)
        assert quad.top_left.y == pytest.approx(0.53)
        assert quad.bottom_left.y == pytest.approx(0.44)
        assert quad.contains((0.5, 0.5))

    def test_facing_page_is_excluded(self):
        grid = np.zeros((60, 60), dtype=bool)
        grid[10:51, 5:26] = True     # page nearest the centre
        grid[10:51, 36:56] = True    # facing page

        quad = CentralTextClusterDetector(grid).detect()

        assert quad.contains((0.25, 0.5))
        assert not quad.contains((0.76, 0.5))
        assert quad.top_right.x == pytest.approx(26 / 60)

    def test_text_touching_edges_falls_back_to_frame(self):
        grid = np.ones((20, 20), dtype=bool)

        quad = CentralTextClusterDetector(grid, ClusterParameters(vert_gap=4)).detect()

        assert tuple(quad.top_left) == pytest.approx((0.0, 19 / 20))
        assert tuple(quad.bottom_right) == pytest.approx((19 / 20, 0.0))

    def test_quad_is_clockwise_from_top_left(self):
        grid = np.zeros((40, 40), dtype=bool)
        grid[15:25, 12:28] = True

        quad = CentralTextClusterDetector(grid).detect()

        assert quad.top_left.x < quad.top_right.x
        assert quad.bottom_left.y < quad.top_left.y
        assert quad.bottom_right.y < quad.top_right.y

    def test_tilted_strip_rounds_half_offsets_away_from_centre(self):
        grid = np.zeros((5, 5), dtype=bool)
        grid[:, 2] = True

        detector = CentralTextClusterDetector(grid)

        # rows shift by -1, -1, 0, +1, +1 columns: only the pivot row hits the filled column
        assert detector._empty_ratio_diag(2, 2, 0, 4, 1) == pytest.approx(0.8)
        assert detector._empty_ratio_diag(2, 2, 0, 4, -1) == pytest.approx(0.8)

    @pytest.mark.parametrize("value, expected", [
        (0.5, 1), (-0.5, -1), (2.5, 3), (-2.5, -3), (1.4, 1), (-1.4, -1), (0.0, 0),
    ])
    def test_round_half_away(self, value, expected):
        assert round_half_away(value) == expected


class TestTextGrid:
    """Test suite for TextGrid marking."""

    def test_rejects_bad_size(self):
        with pytest.raises(ValueError):
            TextGrid(0)

    def test_marks_box_with_flipped_rows(self):
        grid = TextGrid(10)
        grid.mark([TextObservation("top line", Rect(0.0, 0.85, 0.5, 0.1))])

        cells = grid.snapshot()
        assert cells[1, 0] and cells[1, 4]
        assert not cells[8].any()

    def test_tiny_box_marks_one_cell(self):
        grid = TextGrid(60)
        grid.mark([TextObservation(".", Rect(0.51, 0.51, 0.001, 0.001))])

        assert grid.occupied_count() == 1

    def test_clear_and_render(self):
        grid = TextGrid(3)
        grid.mark([TextObservation("x", Rect(0.0, 0.7, 0.2, 0.2))])
        assert grid.render().splitlines()[0].startswith("▓")

        grid.clear()
        assert grid.occupied_count() == 0
        assert set(grid.render().replace("\n", "")) == {"░"}

    def test_concurrent_mark_and_read(self):
        grid = TextGrid(30)
        observations = [TextObservation("x", Rect(0.1, 0.1, 0.8, 0.8))]
        errors = []

        def writer():
            for _ in range(50):
                grid.clear()
                grid.mark(observations)

        def reader():
            try:
                for _ in range(50):
                    snapshot = grid.snapshot()
                    assert snapshot.shape == (30, 30)
            except AssertionError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=writer), threading.Thread(target=reader)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert not errors
        assert grid.occupied_count() > 0
