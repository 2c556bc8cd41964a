[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "patchwork"
version = "0.1.0"
description = "Region-wise ground segmentation of 3D LiDAR point clouds with a concentric zone model"
requires-python = ">=3.10"
keywords = [
    "lidar",
    "point cloud",
    "ground segmentation",
    "semantickitti",
    "pca",
]
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
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
patchwork = "patchwork.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["patchwork"]

[tool.hatch.build.targets.sdist]
include = [
    "patchwork",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
