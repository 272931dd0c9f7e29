"""Plane segmentation of an elevation layer with a sliding-window planarity test."""

from __future__ import annotations

import math
from dataclasses import dataclass, field

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import ndimage

from .gridmap import GridMap
from .planar_region import NormalAndPosition
from .ransac import RansacParameters, RansacPlaneExtractor, plane_parameters
from .upsampling import SegmentedPlanesMap

_UNIT_Z = np.array([0.0, 0.0, 1.0])
_UNDEFINED_ERROR = 1e30


@dataclass
class SlidingWindowParameters:
    """Settings of the sliding-window plane extraction.

    Inclination thresholds are lower bounds on the z component of unit normals.
    """

    kernel_size: int = 3
    planarity_opening_filter: int = 0
    plane_inclination_threshold: float = math.cos(math.radians(30.0))
    local_plane_inclination_threshold: float = math.cos(math.radians(35.0))
    plane_patch_error_threshold: float = 0.02
    min_number_points_per_label: int = 4
    connectivity: int = 4
    include_ransac_refinement: bool = True
    global_plane_fit_distance_error_threshold: float = 0.025
    global_plane_fit_angle_error_threshold_degrees: float = 25.0

    def __post_init__(self) -> None:
        if self.kernel_size < 1 or self.kernel_size % 2 == 0:
            raise ValueError("kernel_size must be a positive odd number")
        if self.connectivity not in (4, 8):
            raise ValueError("connectivity must be 4 or 8")


def _normal_and_error_from_covariance(num_points: int, mean: np.ndarray, sum_squared: np.ndarray) -> tuple[np.ndarray, float]:
    covariance = sum_squared / num_points - np.outer(mean, mean)
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)  # ascending order
    if eigenvalues[1] <= 1e-8:
        # Degenerate spread: the normal is not defined.
        return _UNIT_Z.copy(), _UNDEFINED_ERROR
    normal = eigenvectors[:, 0]
    if normal[2] < 0.0:
        normal = -normal
    return normal, max(float(eigenvalues[0]), 0.0)


def _cross_kernel(size: int) -> np.ndarray:
    kernel = np.zeros((size, size), dtype=bool)
    kernel[size // 2, :] = True
    kernel[:, size // 2] = True
    return kernel


def _morph(binary: np.ndarray, kernel: np.ndarray, operation) -> np.ndarray:
    """Apply a binary morphology operation with replicated borders."""
    r = kernel.shape[0] // 2
    padded = np.pad(binary, r, mode="edge")
    result = operation(padded, structure=kernel)
    return result[r:r + binary.shape[0], r:r + binary.shape[1]]


def _opening(binary: np.ndarray, kernel: np.ndarray) -> np.ndarray:
    eroded = _morph(binary, kernel, ndimage.binary_erosion)
    return _morph(eroded, kernel, ndimage.binary_dilation)


class SlidingWindowPlaneExtractor:
    """Labels locally planar cells, groups them and fits a plane to each group."""

    def __init__(self, parameters: SlidingWindowParameters | None = None,
                 ransac_parameters: RansacParameters | None = None):
        self.parameters = parameters or SlidingWindowParameters()
        self.ransac_parameters = ransac_parameters or RansacParameters()
        self.segmented_planes_map = SegmentedPlanesMap()
        self.binary_labeled_image = np.zeros((0, 0), dtype=np.uint8)
        self.surface_normals = np.zeros((0, 0, 3))
        self._grid_map: GridMap | None = None
        self._layer = ""

    def run_extraction(self, grid_map: GridMap, layer: str) -> SegmentedPlanesMap:
        """Segment the elevation layer into planes; return the segmented planes map."""
        self._grid_map = grid_map
        self._layer = layer
        rows, cols = grid_map.size
        self.segmented_planes_map = SegmentedPlanesMap(
            labeled_image=np.zeros((rows, cols), dtype=np.int32),
            label_plane_parameters=[],
            resolution=grid_map.resolution,
            map_origin=np.asarray(grid_map.position_of_index(0, 0), dtype=float),
            highest_label=-1,
        )
        self.binary_labeled_image = np.zeros((rows, cols), dtype=np.uint8)
        self.surface_normals = np.zeros((rows, cols, 3))

        self._run_sliding_window_detector()
        self._run_segmentation()
        self._extract_plane_parameters_from_labeled_image()

        self.binary_labeled_image = (self.segmented_planes_map.labeled_image > 0).astype(np.uint8)
        return self.segmented_planes_map

    def compute_normal_and_error_for_window(self, window) -> tuple[np.ndarray, float]:
        """Plane normal and mean squared fit error of the finite heights in a window."""
        window = np.asarray(window, dtype=float)
        resolution = self.segmented_planes_map.resolution
        kernel_rows, kernel_cols = np.nonzero(np.isfinite(window))
        if len(kernel_rows) < 3:
            return _UNIT_Z.copy(), _UNDEFINED_ERROR
        points = np.column_stack([
            -kernel_rows * resolution,
            -kernel_cols * resolution,
            window[kernel_rows, kernel_cols],
        ])
        mean = points.mean(axis=0)
        return _normal_and_error_from_covariance(len(points), mean, points.T @ points)

    def is_locally_planar(self, normal, mean_squared_error) -> bool:
        """True if the fit error is small enough and the normal steep enough."""
        threshold = self.parameters.plane_patch_error_threshold
        return bool(mean_squared_error < threshold * threshold
                    and float(normal[2]) > self.parameters.local_plane_inclination_threshold)

    def add_surface_normal_to_map(self, grid_map: GridMap, layer_prefix: str) -> None:
        """Store the per-cell surface normals as layers ``<prefix>_x``, ``_y`` and ``_z``."""
        if self.surface_normals.shape[:2] != tuple(grid_map.size):
            raise ValueError(
                f"map size {grid_map.size} does not match extracted size {self.surface_normals.shape[:2]}"
            )
        for axis, suffix in enumerate(("_x", "_y", "_z")):
            grid_map.add(layer_prefix + suffix, self.surface_normals[:, :, axis])

    def _run_sliding_window_detector(self) -> None:
        k = self.parameters.kernel_size
        half = (k - 1) // 2
        data = np.asarray(self._grid_map.get(self._layer), dtype=float)
        padded = np.pad(data, half, mode="constant", constant_values=np.nan)
        windows = sliding_window_view(padded, (k, k))
        binary = np.zeros(data.shape, dtype=bool)
        for row, col in zip(*np.nonzero(np.isfinite(data))):
            normal, error = self.compute_normal_and_error_for_window(windows[row, col])
            self.surface_normals[row, col] = normal
            binary[row, col] = self.is_locally_planar(normal, error)

        opening = self.parameters.planarity_opening_filter
        if opening > 0 and binary.size:
            binary = _opening(binary, _cross_kernel(2 * opening + 1))
        self.binary_labeled_image = binary.astype(np.uint8)

    def _run_segmentation(self) -> None:
        if self.parameters.connectivity == 4:
            structure = ndimage.generate_binary_structure(2, 1)
        else:
            structure = np.ones((3, 3), dtype=bool)
        labels, count = ndimage.label(self.binary_labeled_image != 0, structure=structure)
        self.segmented_planes_map.labeled_image = labels.astype(np.int32)
        self.segmented_planes_map.highest_label = int(count)

    def _extract_plane_parameters_from_labeled_image(self) -> None:
        for label in range(1, self.segmented_planes_map.highest_label + 1):
            self._compute_plane_parameters_for_label(label)

    def _compute_plane_parameters_for_label(self, label: int) -> None:
        smap = self.segmented_planes_map
        elevation = np.asarray(self._grid_map.get(self._layer), dtype=float)
        # Column-major traversal: the point order fed to RANSAC follows it.
        cols, rows = np.nonzero(smap.labeled_image.T == label)
        heights = elevation[rows, cols]
        finite = np.isfinite(heights)
        rows, cols, heights = rows[finite], cols[finite], heights[finite]
        num_points = len(rows)
        if num_points < self.parameters.min_number_points_per_label or num_points < 3:
            return

        points = np.column_stack([
            smap.map_origin[0] - rows * smap.resolution,
            smap.map_origin[1] - cols * smap.resolution,
            heights,
        ])
        normals = self.surface_normals[rows, cols]
        support = points.mean(axis=0)
        normal, _ = _normal_and_error_from_covariance(num_points, support, points.T @ points)

        if self.parameters.include_ransac_refinement and not self._is_globally_planar(normal, support, points, normals):
            # Unassigned points fall back to the background.
            self._set_to_background(label)
            self._refine_label_with_ransac(label, points, normals, rows, cols)
        elif self._is_within_inclination_limit(normal):
            smap.label_plane_parameters.append((label, NormalAndPosition(support, normal)))
        else:
            self._set_to_background(label)

    def _refine_label_with_ransac(self, label, points, normals, rows, cols) -> None:
        smap = self.segmented_planes_map
        extractor = RansacPlaneExtractor(self.ransac_parameters, seed=0)
        reuse_label = True
        for plane in extractor.detect_planes(points, normals):
            normal, support = plane_parameters(plane)
            if not self._is_within_inclination_limit(normal):
                continue
            if reuse_label:
                new_label = label
                reuse_label = False
            else:
                smap.highest_label += 1
                new_label = smap.highest_label
            smap.label_plane_parameters.append((new_label, NormalAndPosition(support, normal)))
            smap.labeled_image[rows[plane.indices], cols[plane.indices]] = new_label

    def _is_globally_planar(self, normal, support, points, normals) -> bool:
        dot_threshold = math.cos(math.radians(self.parameters.global_plane_fit_angle_error_threshold_degrees))
        distance_error = np.abs(points @ normal - float(normal @ support))
        normal_dots = normals @ normal
        return bool(np.all(distance_error <= self.parameters.global_plane_fit_distance_error_threshold)
                    and np.all(normal_dots >= dot_threshold))

    def _is_within_inclination_limit(self, normal) -> bool:
        return float(normal[2]) > self.parameters.plane_inclination_threshold

    def _set_to_background(self, label: int) -> None:
        labeled = self.segmented_planes_map.labeled_image
        labeled[labeled == label] = 0