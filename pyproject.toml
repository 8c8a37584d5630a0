[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "liltrace"
version = "0.1.0"
description = "Building blocks for physically based rendering: sampling warps, cameras, lights, geometry and microfacet and micrograin BRDF models"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["rendering", "brdf", "microfacet", "micrograin", "ggx", "beckmann", "importance sampling"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Multimedia :: Graphics :: 3D Rendering",
    "Topic :: Scientific/Engineering :: Physics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["liltrace"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
