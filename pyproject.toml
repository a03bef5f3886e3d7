[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vidmeasure"
version = "0.1.0"
description = "Measure lines and circles on video frames, with pixel-to-millimetre scaling and Canny edge detection"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = ["video", "measurement", "edge detection", "canny", "image processing"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Processing",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vidmeasure"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
