[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "terrain_planes"
version = "0.1.0"
description = "Segment elevation grids into planar regions and approximate them with convex polygons"
requires-python = ">=3.10"
keywords = ["elevation map", "terrain", "plane segmentation", "ransac", "convex polygon", "robotics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "scipy",
    "shapely",
    "pillow",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["terrain_planes"]

[tool.pytest.ini_options]
addopts = "-ra"
