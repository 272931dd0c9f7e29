# terrain_planes

Turns a 2.5D elevation grid into planar terrain regions, for example for a
legged-robot foothold planner. It also finds the region closest to a 3D point
and grows convex polygons inside a region.

## Modules

- `terrain_planes.gridmap`: `GridMap` stores named float32 layers on a regular
  grid centred at `position`. Cell (0, 0) holds the largest x and y. Its methods
  are `add`, `get`, `exists`, `position_of_index`, `index_of_position` and
  `submap`. `index_of_position` raises `ValueError` for points outside the map.
  `load_gridmap_from_image(file_path, elevation_layer, frame_id, resolution, scale)`
  reads a greyscale image with Pillow. Pixel values 0–255 become heights
  0–`scale`, and the map is centred at (0, 0).
- `terrain_planes.sliding_window`: `SlidingWindowPlaneExtractor` works with
  `SlidingWindowParameters`. It fits a plane in a `kernel_size` window around
  every finite cell and marks the locally planar cells. It can apply an opening
  filter, then labels the connected patches with 4 or 8 connectivity.
  `run_extraction` fits a plane to each patch and returns a `SegmentedPlanesMap`.
  A patch that is not planar as a whole is split with RANSAC. Steep planes go to
  the background (label 0). `add_surface_normal_to_map` writes the per-cell
  normals as `<prefix>_x`, `_y` and `_z` layers.
- `terrain_planes.ransac`: `RansacPlaneExtractor` and `RansacParameters`.
  `detect_planes(points, normals)` returns `DetectedPlane` objects one after
  another. Each is the largest connected consensus set, and the search is
  deterministic for a given `seed`. `plane_parameters` gives the upward unit
  normal and the projection of the origin onto the plane.
- `terrain_planes.upsampling`: `upsample_image` repeats inner cells three times
  and border cells twice along each axis. `upsample_map` does the same to a
  `SegmentedPlanesMap` and divides its resolution by three.
- `terrain_planes.contour_extraction`: `ContourExtraction` works with
  `ContourExtractionParameters`, whose `margin_size` defaults to 1. It upsamples
  the label image and erodes each label by the safety margin. If the margin
  removes the region, it falls back to a single erosion. It then extracts each
  outline with its holes, plus the inset left after one more erosion. The result
  is a list of `PlanarRegion` objects, with coordinates in the plane's own frame.
  The building blocks are public as well: `extract_polygons_from_binary_image`,
  `extract_boundary_and_inset` and `pixel_to_world_frame`.
- `terrain_planes.planar_region`: `Isometry` provides `apply` and `inverse`, and
  there are `NormalAndPosition`, `BoundaryWithInset` and `PlanarRegion`.
  `transform_local_to_global` builds a plane frame whose z axis is the normal.
  `project_to_plane_along_gravity` and `position_in_world_from_plane` convert
  between world XY and plane XY.
- `terrain_planes.projection`: `best_planar_region_at_position(position,
  regions, penalty_function)` returns a `PlanarTerrainProjection`. The projection
  has the lowest squared distance plus penalty, and regions are pruned with
  bounding-box lower bounds (`sort_with_bounding_boxes`).
  `project_to_planar_region` projects a plane-frame point onto a region's insets.
  It moves the point out of holes and raises `ValueError` for a region without
  insets.
- `terrain_planes.region_growing`: `grow_convex_polygon_inside_shape(shape,
  center, number_of_vertices, growth_factor)` starts from a regular polygon at
  `center` and pushes its vertices outwards. The polygon stays convex and inside
  the shape and its holes. The module also provides `create_regular_polygon`,
  `is_convex`, `is_inside` and `update_mean`.
- `terrain_planes.draw`: `draw_circle`, `draw_polygon` and `draw_shape` draw
  outlines in place onto a uint8 RGB numpy image. `scale_polygon` and
  `scale_shape` scale shapes about the origin. `random_color` picks a colour
  when none is given.

Shapes are shapely `Polygon`s; plain vertex lists are accepted where a shape is
expected. Convex polygons come back as `(n, 2)` numpy arrays. Plane-frame points
are `(x, y)` tuples.

## Example

```python
import numpy as np
from terrain_planes.gridmap import load_gridmap_from_image
from terrain_planes.sliding_window import SlidingWindowParameters, SlidingWindowPlaneExtractor
from terrain_planes.contour_extraction import ContourExtraction, ContourExtractionParameters
from terrain_planes.projection import best_planar_region_at_position
from terrain_planes.region_growing import grow_convex_polygon_inside_shape

grid = load_gridmap_from_image("terrain.png", "elevation", "odom", 0.04, 1.25)

extractor = SlidingWindowPlaneExtractor(SlidingWindowParameters())
segmented = extractor.run_extraction(grid, "elevation")

regions = ContourExtraction(ContourExtractionParameters()).extract_planar_regions(segmented)

query = np.array([0.5, 0.2, 0.3])
projection = best_planar_region_at_position(query, regions, lambda p: 0.1 * abs(p[2]))

if projection.region is not None:
    convex = grow_convex_polygon_inside_shape(
        projection.region.boundary_with_inset.boundary,
        projection.position_in_terrain_frame,
        8,
        1.05,
    )
```

## What it does not do

This is a library with no command-line tool. It does not build elevation maps
from point clouds or sensor streams, and it does not publish maps over a
network. It has no single pipeline object. The caller runs extraction and
contour extraction as shown above. Inpainting, median smoothing, resampling and
height offsets of the elevation layer before or after segmentation are not
provided either.

## Running the tests

```
pip install .[test]
pytest
```