"""Planar region segmentation, projection and convex approximation for elevation grids."""

__version__ = "0.1.0"