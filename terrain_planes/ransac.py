"""RANSAC detection of planes in oriented point sets."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import connected_components
from scipy.spatial import cKDTree

_MAX_TRIALS = 1000


@dataclass
class RansacParameters:
    """Search settings; ``epsilon`` is the inlier distance, ``normal_threshold`` in degrees."""

    probability: float = 0.01
    min_points: int = 4
    epsilon: float = 0.025
    cluster_epsilon: float = 0.08
    normal_threshold: float = 25.0


@dataclass
class DetectedPlane:
    """Plane ``normal . x = offset`` and the indices of the points assigned to it."""

    normal: np.ndarray
    offset: float
    indices: np.ndarray


def plane_parameters(plane: DetectedPlane) -> tuple[np.ndarray, np.ndarray]:
    """Upward unit normal and the projection of the origin onto the plane."""
    normal = np.asarray(plane.normal, dtype=float)
    squared = float(normal @ normal)
    support = normal * (plane.offset / squared)
    unit = normal / math.sqrt(squared)
    if unit[2] < 0.0:
        unit = -unit
    return unit, support


def _required_trials(found: int, total: int, probability: float) -> int:
    if probability <= 0.0:
        return _MAX_TRIALS
    if probability >= 1.0 or found >= total:
        return 1
    miss = 1.0 - (found / total) ** 3
    if miss <= 0.0:
        return 1
    return math.ceil(math.log(probability) / math.log(miss))


def _fit_plane(points: np.ndarray) -> tuple[np.ndarray, float]:
    centroid = points.mean(axis=0)
    _, _, vt = np.linalg.svd(points - centroid)
    normal = vt[-1]
    return normal, float(normal @ centroid)


class RansacPlaneExtractor:
    """Finds planes one after another, each the largest connected consensus set."""

    def __init__(self, parameters: RansacParameters | None = None, seed: int = 0):
        self.parameters = parameters or RansacParameters()
        self.seed = seed
        self.detected_planes: list[DetectedPlane] = []

    def detect_planes(self, points, normals) -> list[DetectedPlane]:
        """Detect planes; indices refer to the order of the given points."""
        pts = np.asarray(points, dtype=float).reshape(-1, 3)
        nrm = np.asarray(normals, dtype=float).reshape(-1, 3)
        if len(pts) != len(nrm):
            raise ValueError("points and normals must have the same length")
        rng = np.random.default_rng(self.seed)
        min_points = max(int(self.parameters.min_points), 3)
        remaining = np.arange(len(pts))
        planes = []
        while len(remaining) >= min_points:
            plane = self._search(pts, nrm, remaining, rng, min_points)
            if plane is None:
                break
            planes.append(plane)
            remaining = np.setdiff1d(remaining, plane.indices, assume_unique=True)
        self.detected_planes = planes
        return planes

    def _inliers(self, pts, nrm, remaining, normal, offset) -> np.ndarray:
        params = self.parameters
        cos_threshold = math.cos(math.radians(params.normal_threshold))
        close = np.abs(pts[remaining] @ normal - offset) <= params.epsilon
        aligned = np.abs(nrm[remaining] @ normal) >= cos_threshold
        candidates = remaining[close & aligned]
        if len(candidates) == 0 or params.cluster_epsilon <= 0.0:
            return candidates
        pairs = cKDTree(pts[candidates]).query_pairs(params.cluster_epsilon, output_type="ndarray")
        size = len(candidates)
        graph = coo_matrix((np.ones(len(pairs)), (pairs[:, 0], pairs[:, 1])), shape=(size, size))
        _, component = connected_components(graph, directed=False)
        largest = np.bincount(component).argmax()
        return candidates[component == largest]

    def _search(self, pts, nrm, remaining, rng, min_points) -> DetectedPlane | None:
        best = None
        needed = _MAX_TRIALS
        trials = 0
        while trials < needed:
            trials += 1
            a, b, c = pts[rng.choice(remaining, 3, replace=False)]
            normal = np.cross(b - a, c - a)
            length = float(np.linalg.norm(normal))
            if length < 1e-12:
                continue
            normal = normal / length
            offset = float(normal @ a)
            indices = self._inliers(pts, nrm, remaining, normal, offset)
            if best is None or len(indices) > len(best):
                best = indices
                if len(indices) >= min_points:
                    needed = min(_MAX_TRIALS, _required_trials(len(indices), len(remaining), self.parameters.probability))
        if best is None or len(best) < min_points:
            return None
        normal, offset = _fit_plane(pts[best])
        refined = self._inliers(pts, nrm, remaining, normal, offset)
        indices = refined if len(refined) >= min_points else best
        return DetectedPlane(normal, offset, np.sort(indices))