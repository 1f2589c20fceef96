[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "concord"
version = "0.1.0"
description = "Signed, encrypted chat messages stored in a proof-of-work block tree"
requires-python = ">=3.10"
keywords = ["chat", "proof-of-work", "encryption", "dag", "hash-tree"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Communications :: Chat",
    "Topic :: Security :: Cryptography",
]
dependencies = [
    "cryptography",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["concord"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
