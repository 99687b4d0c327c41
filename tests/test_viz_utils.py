"""Tests for result visualization."""
import math

import numpy as np
from PIL import Image

from slicvid.types import CentreStore, FrameResult, LoopState, UNASSIGNED
from slicvid.viz_utils import (
    FrameStatistics,
    clamp_area,
    contour_pixels,
    draw_cluster_centres,
    draw_cluster_contours,
    draw_information,
    fill_superpixels,
    save_image,
)


def halves(h=6, w=10):
    labels = np.zeros((h, w), dtype=np.int32)
    labels[:, w // 2:] = 1
    return labels


def frame_result(iterations, error, time_ms):
    return FrameResult(
        frame_index=0, iterations=iterations, total_residual_error=error,
        cluster_count=16, state=LoopState.EXHAUSTED, execution_time_ms=time_ms
    )


class TestClampArea:
    """Test region-of-interest clamping."""

    def test_full_image(self):
        assert clamp_area(None, 100, 50) == (0, 0, 100, 50)

    def test_origin_outside(self):
        assert clamp_area((-5, 3, 10, 10), 100, 50) == (0, 3, 10, 10)
        assert clamp_area((120, 60, 10, 10), 100, 50) == (0, 0, 10, 10)

    def test_extent_overflow(self):
        assert clamp_area((90, 0, 20, 10), 100, 50) == (90, 0, 10, 10)
        assert clamp_area((10, 20, -1, -1), 100, 50) == (10, 20, 90, 30)


class TestFillSuperpixels:
    def test_mean_colours(self):
        image = np.zeros((6, 10, 3), dtype=np.uint8)
        store = CentreStore.from_centres([[10.4, 20, 30, 2, 2], [200, 100, 50.6, 7, 2]])

        out = fill_superpixels(image, halves(), store)

        assert (out[:, :5] == [10, 20, 30]).all()
        assert (out[:, 5:] == [200, 100, 51]).all()
        assert (image == 0).all()

    def test_unassigned_untouched(self):
        image = np.full((6, 10, 3), 7, dtype=np.uint8)
        labels = halves()
        labels[0, 0] = UNASSIGNED
        store = CentreStore.from_centres([[1, 1, 1, 0, 0], [2, 2, 2, 0, 0]])

        out = fill_superpixels(image, labels, store)

        assert (out[0, 0] == 7).all()
        assert (out[1, 0] == 1).all()

    def test_area(self):
        image = np.zeros((6, 10, 3), dtype=np.uint8)
        store = CentreStore.from_centres([[50, 50, 50, 0, 0], [90, 90, 90, 0, 0]])

        out = fill_superpixels(image, halves(), store, area=(0, 0, 3, 6))

        assert (out[:, :3] == 50).all()
        assert (out[:, 3:] == 0).all()


class TestContours:
    def test_boundary_columns(self):
        contour = contour_pixels(halves())
        expected = np.zeros((6, 10), dtype=bool)
        expected[:, 4:6] = True
        np.testing.assert_array_equal(contour, expected)

    def test_unassigned_neighbours_ignored(self):
        labels = np.zeros((5, 5), dtype=np.int32)
        labels[2, 2] = UNASSIGNED
        assert not contour_pixels(labels).any()

    def test_draw(self):
        image = np.zeros((6, 10, 3), dtype=np.uint8)
        out = draw_cluster_contours(image, halves(), color=(255, 255, 255), area=(0, 0, 10, 3))

        assert (out[:3, 4:6] == 255).all()
        assert (out[3:] == 0).all()
        assert (image == 0).all()


class TestDrawCentres:
    def test_circle_drawn(self):
        image = np.zeros((30, 30, 3), dtype=np.uint8)
        store = CentreStore.from_centres([[0, 0, 0, 10.7, 10.2]])

        out = draw_cluster_centres(image, store, color=(0, 0, 255))

        assert out[8:13, 8:13, 2].any()
        assert not out[20:, 20:].any()
        assert not image.any()


class TestFrameStatistics:
    """Test running diagnostics."""

    def test_record(self):
        stats = FrameStatistics()
        stats.record(frame_result(3, math.inf, 10.0))
        stats.record(frame_result(5, 0.2, 30.0))

        assert stats.frames == 2
        assert stats.min_iterations == 3
        assert stats.max_iterations == 5
        assert stats.average_iterations == 4.0
        assert stats.min_error == 0.2
        assert stats.max_error == 0.2
        assert stats.average_error == 0.2
        assert stats.min_time_ms == 10.0
        assert stats.max_time_ms == 30.0
        assert stats.average_time_ms == 20.0

    def test_empty(self):
        stats = FrameStatistics()
        assert stats.average_error is None
        assert stats.average_iterations == 0.0

    def test_panel_before_finite_error(self):
        """Test that error fields read n/a until a frame reports a finite error."""
        stats = FrameStatistics()
        result = frame_result(1, math.inf, 8.0)
        stats.record(result)

        lines = stats.lines(result, 10, 10.0)

        assert "Error now: n/a" in lines
        assert "Error min.: n/a" in lines
        assert "Error max.: n/a" in lines
        assert "Error avg.: n/a" in lines
        assert not any("inf" in line for line in lines)

        result = frame_result(3, 0.25, 8.0)
        stats.record(result)
        lines = stats.lines(result, 10, 10.0)
        assert "Error min.: 0.2500" in lines
        assert "Error avg.: 0.2500" in lines

    def test_panel(self):
        stats = FrameStatistics()
        result = frame_result(4, 0.3, 12.0)
        stats.record(result)

        lines = stats.lines(result, 10, 10.0)
        assert lines[0] == "Frame: 1 (10 total)"
        assert "Superpixels: 16" in lines

        image = np.zeros((400, 400, 3), dtype=np.uint8)
        out = draw_information(image, stats, result, 10, 10.0)
        assert out.shape == image.shape
        assert (out[315, 250] == 255).all()
        assert not image.any()


class TestSaveImage:
    def test_png(self, tmp_path):
        image = np.zeros((8, 12, 3), dtype=np.uint8)
        image[:, 6:] = [255, 0, 0]
        path = tmp_path / "out.png"

        save_image(image, path)

        with Image.open(path) as saved:
            assert saved.size == (12, 8)
            assert saved.getpixel((10, 4)) == (255, 0, 0)
