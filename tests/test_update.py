"""Tests for the update step."""
import math

import numpy as np

from slicvid.types import CentreStore, UNASSIGNED
from slicvid.update import accumulate_centres, residual_error, update_centres


class TestAccumulateCentres:
    """Test per-cluster means."""

    def test_two_halves(self):
        image = np.zeros((4, 6, 3))
        image[:, 3:] = [90.0, 30.0, 60.0]
        labels = np.zeros((4, 6), dtype=np.int32)
        labels[:, 3:] = 1

        centres, sizes = accumulate_centres(image, labels, 2)

        np.testing.assert_array_equal(sizes, [12, 12])
        np.testing.assert_allclose(centres[0], [0, 0, 0, 1.0, 1.5])
        np.testing.assert_allclose(centres[1], [90, 30, 60, 4.0, 1.5])

    def test_empty_cluster_not_divided(self):
        """Test that a cluster without pixels stays at zero with no NaN."""
        image = np.full((5, 5, 3), 50.0)
        labels = np.zeros((5, 5), dtype=np.int32)

        with np.errstate(all='raise'):
            centres, sizes = accumulate_centres(image, labels, 3)

        np.testing.assert_array_equal(sizes, [25, 0, 0])
        np.testing.assert_array_equal(centres[1:], np.zeros((2, 5)))
        assert np.isfinite(centres).all()

    def test_unassigned_pixels_ignored(self):
        image = np.full((3, 3, 3), 10.0)
        image[0, 0] = [250.0, 250.0, 250.0]
        labels = np.zeros((3, 3), dtype=np.int32)
        labels[0, 0] = UNASSIGNED

        centres, sizes = accumulate_centres(image, labels, 1)

        assert sizes[0] == 8
        np.testing.assert_allclose(centres[0, :3], [10.0, 10.0, 10.0])


class TestResidualError:
    def test_displacement(self):
        centres = np.array([[0, 0, 0, 4.0, 5.0]])
        previous = np.array([[9, 9, 9, 1.0, 1.0]])
        np.testing.assert_allclose(residual_error(centres, previous), [5.0])


class TestUpdateCentres:
    """Test snapshot and residual bookkeeping."""

    def test_first_iteration(self):
        """Test that the first pass copies the snapshot and reports +inf."""
        image = np.full((10, 10, 3), 20.0)
        labels = np.zeros((10, 10), dtype=np.int32)
        store = CentreStore.from_centres([[0, 0, 0, 0, 0]])

        error = update_centres(image, labels, store, first_iteration=True)

        assert math.isinf(error)
        np.testing.assert_allclose(store.centres[0], [20, 20, 20, 4.5, 4.5])
        np.testing.assert_array_equal(store.previous, store.centres)

    def test_later_iteration_residual(self):
        """Test the mean positional residual against the snapshot."""
        image = np.full((10, 10, 3), 20.0)
        labels = np.zeros((10, 10), dtype=np.int32)
        store = CentreStore.from_centres([[20, 20, 20, 1.5, 0.5]])

        error = update_centres(image, labels, store, first_iteration=False)

        assert error == 5.0
        np.testing.assert_allclose(store.residuals, [5.0])
        np.testing.assert_array_equal(store.previous, store.centres)

    def test_mean_over_all_centres(self):
        """Test that empty centres count towards the mean residual."""
        image = np.zeros((10, 10, 3))
        labels = np.zeros((10, 10), dtype=np.int32)
        store = CentreStore.from_centres([[0, 0, 0, 4.5, 8.5], [0, 0, 0, 0, 0]])

        error = update_centres(image, labels, store, first_iteration=False)

        assert error == 2.0
        np.testing.assert_array_equal(store.sizes, [100, 0])
