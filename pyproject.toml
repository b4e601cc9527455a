[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "utreexo"
version = "0.1.0"
description = "Forest arithmetic, hashing and undo data for a hash-based Bitcoin UTXO accumulator, with readers and writers for bridge node storage formats"
requires-python = ">=3.10"
keywords = [
    "bitcoin",
    "utxo",
    "accumulator",
    "merkle",
    "utreexo",
    "undo",
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
    "Topic :: Office/Business :: Financial",
    "Topic :: Security :: Cryptography",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["utreexo"]

[tool.hatch.build.targets.sdist]
include = [
    "utreexo",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
