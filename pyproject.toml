[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "slsclient"
version = "0.6.0"
description = "Management calls for a hosted log service (resources, tags, shards, sub-stores, ETL and scheduled SQL jobs) over a pluggable transport, plus a consumer-group library."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "logging",
    "log service",
    "consumer group",
    "shards",
    "checkpoint",
    "etl",
    "scheduled sql",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Logging",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["slsclient"]

[tool.hatch.build.targets.sdist]
include = ["slsclient", "tests"]

[tool.pytest.ini_options]
testpaths = ["tests"]
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
