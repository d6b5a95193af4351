[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fnops"
version = "0.1.0"
description = "Apply, reconcile and delete serverless function resources through a pluggable cluster client, plus container run helpers"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = ["serverless", "functions", "kubernetes", "operator", "containers"]
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
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
fnops = "fnops.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["fnops"]

[tool.pytest.ini_options]
addopts = "-ra"
