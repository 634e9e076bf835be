[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "uplink"
version = "0.1.0"
description = "Reed-Solomon erasure coding, stripe decoding and client-side primitives for decentralized object storage"
requires-python = ">=3.10"
dependencies = []
keywords = ["erasure-coding", "reed-solomon", "storage", "object-storage", "etag"]
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
    "Topic :: System :: Archiving",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["uplink"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
