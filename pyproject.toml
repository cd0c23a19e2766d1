[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "driftecs"
version = "0.3.0"
description = "A small entity-component-system game runtime: world, queries, deferred commands, phased scheduler and gameplay plugins."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "ecs",
    "entity-component-system",
    "game-engine",
    "gamedev",
    "scheduler",
    "particles",
    "2d",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: Software Development :: Libraries :: Application Frameworks",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["driftecs"]

[tool.hatch.build.targets.sdist]
include = ["driftecs", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
