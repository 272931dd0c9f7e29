import numpy as np
import pytest

from terrain_planes.gridmap import GridMap
from terrain_planes.sliding_window import SlidingWindowParameters, SlidingWindowPlaneExtractor


def _map(size=10, resolution=0.1):
    return GridMap((size * resolution, size * resolution), resolution, (0.0, 0.0), "odom")


def _flat_map(height=0.5):
    grid = _map()
    grid.add("elevation", np.full(grid.size, height))
    return grid


def test_flat_map_gives_single_upward_plane():
    grid = _flat_map(0.5)
    extractor = SlidingWindowPlaneExtractor()
    smap = extractor.run_extraction(grid, "elevation")
    assert smap.highest_label == 1
    assert len(smap.label_plane_parameters) == 1
    label, plane = smap.label_plane_parameters[0]
    assert label == 1
    assert np.allclose(plane.normal, [0.0, 0.0, 1.0], atol=1e-6)
    assert np.allclose(plane.position, [0.0, 0.0, 0.5], atol=1e-6)
    assert np.all(smap.labeled_image == 1)
    assert np.all(extractor.binary_labeled_image == 1)


def test_segmented_map_geometry_follows_grid():
    grid = _flat_map()
    smap = SlidingWindowPlaneExtractor().run_extraction(grid, "elevation")
    assert smap.resolution == pytest.approx(grid.resolution)
    assert np.allclose(smap.map_origin, grid.position_of_index(0, 0))
    assert smap.labeled_image.shape == grid.size


def test_non_finite_cells_are_not_planar():
    grid = _map()
    data = np.full(grid.size, 0.2)
    data[4, 4] = np.nan
    grid.add("elevation", data)
    extractor = SlidingWindowPlaneExtractor()
    smap = extractor.run_extraction(grid, "elevation")
    assert extractor.binary_labeled_image[4, 4] == 0
    assert smap.labeled_image[4, 4] == 0
    assert extractor.binary_labeled_image[0, 0] == 1


def test_step_splits_into_two_planes():
    grid = _map()
    data = np.zeros(grid.size)
    data[:, 5:] = 1.0
    grid.add("elevation", data)
    smap = SlidingWindowPlaneExtractor().run_extraction(grid, "elevation")
    assert smap.highest_label == 2
    heights = {label: plane.position[2] for label, plane in smap.label_plane_parameters}
    assert heights[1] == pytest.approx(0.0, abs=1e-9)
    assert heights[2] == pytest.approx(1.0, abs=1e-9)
    assert np.all(smap.labeled_image[:, 4:6] == 0)


def test_steep_slope_is_rejected():
    grid = _map()
    rows = np.arange(grid.size[0])[:, None] * np.ones(grid.size[1])
    grid.add("elevation", 2.0 * rows * grid.resolution)
    extractor = SlidingWindowPlaneExtractor()
    smap = extractor.run_extraction(grid, "elevation")
    assert smap.label_plane_parameters == []
    assert np.all(extractor.binary_labeled_image == 0)


def test_window_with_too_few_points_has_undefined_normal():
    extractor = SlidingWindowPlaneExtractor()
    extractor.run_extraction(_flat_map(), "elevation")
    window = np.full((3, 3), np.nan)
    window[0, 0] = 1.0
    window[1, 1] = 1.0
    normal, error = extractor.compute_normal_and_error_for_window(window)
    assert np.allclose(normal, [0.0, 0.0, 1.0])
    assert error == 1e30


def test_window_on_tilted_plane_gives_perpendicular_unit_normal():
    extractor = SlidingWindowPlaneExtractor()
    extractor.run_extraction(_flat_map(), "elevation")
    res = 0.1
    slope = 0.3
    window = np.array([[slope * r * res for _ in range(3)] for r in range(3)])
    normal, error = extractor.compute_normal_and_error_for_window(window)
    assert np.linalg.norm(normal) == pytest.approx(1.0)
    assert normal[2] > 0.0
    assert float(normal @ np.array([-1.0, 0.0, slope])) == pytest.approx(0.0, abs=1e-9)
    assert float(normal @ np.array([0.0, 1.0, 0.0])) == pytest.approx(0.0, abs=1e-9)
    assert error == pytest.approx(0.0, abs=1e-12)


def test_is_locally_planar_thresholds():
    params = SlidingWindowParameters(plane_patch_error_threshold=0.1, local_plane_inclination_threshold=0.5)
    extractor = SlidingWindowPlaneExtractor(params)
    assert extractor.is_locally_planar(np.array([0.0, 0.0, 1.0]), 0.005)
    assert not extractor.is_locally_planar(np.array([0.0, 0.0, 1.0]), 0.02)
    assert not extractor.is_locally_planar(np.array([0.9, 0.0, 0.4]), 0.0)


def test_add_surface_normal_to_map():
    grid = _flat_map()
    extractor = SlidingWindowPlaneExtractor()
    extractor.run_extraction(grid, "elevation")
    extractor.add_surface_normal_to_map(grid, "normal")
    assert np.allclose(grid.get("normal_z"), 1.0)
    assert np.allclose(grid.get("normal_x"), 0.0, atol=1e-6)
    assert np.allclose(grid.get("normal_y"), 0.0, atol=1e-6)


def test_add_surface_normal_to_map_size_mismatch():
    extractor = SlidingWindowPlaneExtractor()
    extractor.run_extraction(_flat_map(), "elevation")
    with pytest.raises(ValueError):
        extractor.add_surface_normal_to_map(_map(size=6), "normal")


def test_opening_filter_keeps_flat_map_planar():
    params = SlidingWindowParameters(planarity_opening_filter=1)
    extractor = SlidingWindowPlaneExtractor(params)
    smap = extractor.run_extraction(_flat_map(), "elevation")
    assert np.all(extractor.binary_labeled_image == 1)
    assert smap.highest_label == 1


def test_ransac_refinement_keeps_labels_consistent():
    grid = _map(size=20)
    data = np.zeros(grid.size)
    for row in range(grid.size[0]):
        x = grid.position_of_index(row, 0)[0]
        data[row, :] = 0.1 * abs(x)
    grid.add("elevation", data)
    params = SlidingWindowParameters(plane_patch_error_threshold=0.05)
    extractor = SlidingWindowPlaneExtractor(params)
    smap = extractor.run_extraction(grid, "elevation")
    labels = [label for label, _ in smap.label_plane_parameters]
    assert len(labels) >= 1
    assert len(labels) == len(set(labels))
    used = set(np.unique(smap.labeled_image)) - {0}
    assert used <= set(labels)
    for _, plane in smap.label_plane_parameters:
        assert plane.normal[2] > params.plane_inclination_threshold
    assert np.array_equal(extractor.binary_labeled_image, (smap.labeled_image > 0).astype(np.uint8))


@pytest.mark.parametrize("kwargs", [{"kernel_size": 4}, {"kernel_size": 0}, {"connectivity": 6}])
def test_invalid_parameters(kwargs):
    with pytest.raises(ValueError):
        SlidingWindowParameters(**kwargs)