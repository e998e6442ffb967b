[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "deformslam"
version = "0.1.0"
description = "Building blocks for deformable visual SLAM: image masking, optical-flow pyramids and window sampling, and error terms for graph optimization."
requires-python = ">=3.10"
keywords = ["slam", "optical-flow", "image-pyramid", "masking", "graph-optimization", "deformable", "computer-vision"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Scientific/Engineering :: Image Processing",
]
dependencies = [
    "numpy",
    "scipy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["deformslam"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
