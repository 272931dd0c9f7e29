import numpy as np
import pytest
from shapely.geometry import Point

from terrain_planes.contour_extraction import (
    ContourExtraction,
    extract_boundary_and_inset,
    extract_polygons_from_binary_image,
    pixel_to_world_frame,
)
from terrain_planes.planar_region import NormalAndPosition
from terrain_planes.upsampling import SegmentedPlanesMap

CROSS = np.array([[0, 1, 0], [1, 1, 1], [0, 1, 0]], dtype=bool)


def test_pixel_to_world_swaps_axes():
    assert pixel_to_world_frame((2.0, 4.0), 0.5, (1.0, 2.0)) == pytest.approx((-1.0, 1.0))


def test_pixel_origin_maps_to_map_offset():
    assert pixel_to_world_frame((0.0, 0.0), 0.3, (1.5, -2.5)) == pytest.approx((1.5, -2.5))


def test_rectangle_outline():
    image = np.zeros((10, 12), dtype=np.uint8)
    image[2:6, 3:9] = 255
    polygons = extract_polygons_from_binary_image(image)
    assert len(polygons) == 1
    assert polygons[0].bounds == pytest.approx((3.0, 2.0, 8.0, 5.0))
    assert len(polygons[0].exterior.coords) - 1 == 4
    assert len(polygons[0].interiors) == 0


def test_hole_is_attached_to_its_component():
    image = np.zeros((10, 10), dtype=np.uint8)
    image[1:9, 1:9] = 1
    image[4:6, 4:6] = 0
    polygons = extract_polygons_from_binary_image(image)
    assert len(polygons) == 1
    assert len(polygons[0].interiors) == 1
    assert not polygons[0].covers(Point(4.5, 4.5))
    assert polygons[0].covers(Point(2.0, 2.0))


def test_separate_blobs_give_separate_polygons():
    image = np.zeros((10, 20), dtype=np.uint8)
    image[2:6, 2:6] = 1
    image[2:6, 12:16] = 1
    polygons = extract_polygons_from_binary_image(image)
    assert len(polygons) == 2
    assert polygons[0].disjoint(polygons[1])


def test_empty_and_single_pixel_images_give_nothing():
    assert extract_polygons_from_binary_image(np.zeros((5, 5))) == []
    single = np.zeros((5, 5))
    single[2, 2] = 1
    assert extract_polygons_from_binary_image(single) == []


def test_boundary_gets_inset_inside_it():
    image = np.zeros((12, 12), dtype=np.uint8)
    image[2:10, 2:10] = 255
    original = image.copy()
    result = extract_boundary_and_inset(image, CROSS)
    assert len(result) == 1
    assert len(result[0].insets) == 1
    assert result[0].boundary.covers(result[0].insets[0])
    assert result[0].insets[0].area < result[0].boundary.area
    assert np.array_equal(image, original)


def test_full_image_region_gets_inset_from_border_erosion():
    result = extract_boundary_and_inset(np.ones((6, 6), dtype=np.uint8), CROSS)
    assert len(result) == 1
    assert result[0].boundary.covers(result[0].insets[0])


def test_extract_planar_regions_on_horizontal_plane():
    labeled = np.zeros((10, 10), dtype=np.int32)
    labeled[2:8, 2:8] = 1
    labeled[0, 0] = 2
    labeled[9, 9] = 3
    planes = [
        (1, NormalAndPosition((0.0, 0.0, 0.5), (0.0, 0.0, 1.0))),
        (2, NormalAndPosition((0.0, 0.0, 0.0), (0.0, 0.0, 1.0))),
    ]
    segmented = SegmentedPlanesMap(labeled, planes, 1.0, np.zeros(2), 3)
    regions = ContourExtraction().extract_planar_regions(segmented)
    assert len(regions) == 1
    region = regions[0]
    assert region.transform_plane_to_world.translation == pytest.approx([0.0, 0.0, 0.5])
    boundary = region.boundary_with_inset.boundary
    assert region.bbox2d == pytest.approx(boundary.exterior.bounds)
    assert all(boundary.covers(inset) for inset in region.boundary_with_inset.insets)
    assert 0.0 < boundary.area < 36.0
    coords = np.asarray(boundary.exterior.coords)
    assert (coords <= 0.0).all()