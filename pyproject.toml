[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "distmx"
version = "0.1.0"
description = "Perfect point-to-point links over TCP, distributed mutual exclusion and concurrent sorting exercises"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "distributed-systems",
    "mutual-exclusion",
    "logical-clocks",
    "point-to-point-link",
    "merge-sort",
    "insertion-sort",
    "concurrency",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
distmx-sort = "distmx.sorting:main"
distmx-chat = "distmx.chat:main"
distmx-dimex = "distmx.use_dimex:main"

[tool.hatch.build.targets.wheel]
packages = ["distmx"]

[tool.pytest.ini_options]
addopts = "-ra"
