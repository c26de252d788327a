[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "clabtools"
version = "0.1.0"
description = "Clos topology generation, node kind definitions and inspection helpers for container-based network labs"
requires-python = ">=3.10"
keywords = ["network", "lab", "containers", "topology", "clos", "veth", "mysocketio"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
]
dependencies = [
    "pyyaml",
    "packaging",
    "tabulate",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
clabtools = "clabtools.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["clabtools"]

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
ignore_missing_imports = true
