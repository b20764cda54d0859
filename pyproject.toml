[build-system]
requires = ["hatchling>=1.18"]
build-backend = "hatchling.build"

[project]
name = "unilidar"
version = "2.0.9"
description = "Frame codec, point-cloud parsing and UDP/serial reader for Unitree L2 lidars"
requires-python = ">=3.10"
dependencies = [
    "pyserial>=3.5",
]
keywords = [
    "lidar",
    "point cloud",
    "imu",
    "udp",
    "serial",
    "robotics",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Interface Engine/Protocol Translator",
    "Topic :: Scientific/Engineering",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
unilidar = "unilidar.cli:main"
unilidar-node = "unilidar.bridge:main"

[tool.hatch.build.targets.wheel]
packages = ["unilidar"]

[tool.hatch.build.targets.sdist]
include = [
    "unilidar",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
