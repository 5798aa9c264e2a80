[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minirdbms"
version = "0.1.0"
description = "A small in-memory relational database engine with a catalog, joins, grouping, ordering and aggregation"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "rdbms", "sql", "query-engine", "in-memory"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["minirdbms"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
