[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "demogobbler"
version = "0.1.0"
description = "Parser and writer for Source engine demo files: headers, datatables, net messages and entity state"
requires-python = ">=3.10"
dependencies = []
keywords = ["source engine", "demo", "dem", "parser", "portal", "left 4 dead", "netmessages"]
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
    "Topic :: Games/Entertainment :: First Person Shooters",
    "Topic :: File Formats",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["demogobbler"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
