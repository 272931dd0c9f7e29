"""Planar regions and the frames attached to them."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np

_CROSS_TOLERANCE = 1e-3


@dataclass
class Isometry:
    """Rigid 3D transform: rotation ``linear`` and ``translation``."""

    linear: np.ndarray = field(default_factory=lambda: np.eye(3))
    translation: np.ndarray = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self) -> None:
        self.linear = np.asarray(self.linear, dtype=float).reshape(3, 3)
        self.translation = np.asarray(self.translation, dtype=float).reshape(3)

    def apply(self, point) -> np.ndarray:
        """Map a 3D point through the transform."""
        return self.linear @ np.asarray(point, dtype=float) + self.translation

    def inverse(self) -> "Isometry":
        """Return the inverse transform."""
        rotation_t = self.linear.T
        return Isometry(rotation_t, -(rotation_t @ self.translation))


@dataclass
class NormalAndPosition:
    """A plane given by a point on it and its normal."""

    position: np.ndarray
    normal: np.ndarray

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=float).reshape(3)
        self.normal = np.asarray(self.normal, dtype=float).reshape(3)


@dataclass
class BoundaryWithInset:
    """A region boundary together with the inset shapes inside it."""

    boundary: Any = None
    insets: list = field(default_factory=list)


@dataclass
class PlanarRegion:
    """A bounded region on a plane, expressed in the plane frame."""

    boundary_with_inset: BoundaryWithInset = field(default_factory=BoundaryWithInset)
    transform_plane_to_world: Isometry = field(default_factory=Isometry)
    bbox2d: tuple = (0.0, 0.0, 0.0, 0.0)  # xmin, ymin, xmax, ymax


def transform_local_to_global(normal_and_position: NormalAndPosition) -> Isometry:
    """Build a plane frame whose z axis is the plane normal."""
    z_axis = normal_and_position.normal / np.linalg.norm(normal_and_position.normal)
    y_axis = np.cross(z_axis, np.array([1.0, 0.0, 0.0]))
    y_squared_norm = float(y_axis @ y_axis)
    if y_squared_norm > _CROSS_TOLERANCE:
        y_axis = y_axis / np.sqrt(y_squared_norm)
    else:
        y_axis = np.cross(z_axis, np.cross(np.array([0.0, 1.0, 0.0]), z_axis))
        y_axis = y_axis / np.linalg.norm(y_axis)
    x_axis = np.cross(y_axis, z_axis)
    linear = np.column_stack([x_axis, y_axis, z_axis])
    return Isometry(linear, normal_and_position.position.copy())


def project_to_plane_along_gravity(world_xy, transform_plane_to_world: Isometry) -> tuple[float, float]:
    """Project a world XY position vertically onto the plane; return plane XY."""
    x_axis = transform_plane_to_world.linear[:, 0]
    y_axis = transform_plane_to_world.linear[:, 1]
    normal = transform_plane_to_world.linear[:, 2]
    origin = transform_plane_to_world.translation
    dx = float(world_xy[0]) - origin[0]
    dy = float(world_xy[1]) - origin[1]
    offset = np.array([dx, dy, (-dx * normal[0] - dy * normal[1]) / normal[2]])
    return float(x_axis @ offset), float(y_axis @ offset)


def position_in_world_from_plane(plane_xy, transform_plane_to_world: Isometry) -> np.ndarray:
    """World position of a plane-frame XY point lying on the plane."""
    linear = transform_plane_to_world.linear
    return (
        transform_plane_to_world.translation
        + float(plane_xy[0]) * linear[:, 0]
        + float(plane_xy[1]) * linear[:, 1]
    )