[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "componentcargo"
version = "0.1.0"
description = "Helpers for tools that wrap cargo to build and run WebAssembly components"
requires-python = ">=3.11"
keywords = ["cargo", "webassembly", "wasm", "component-model", "wasi", "build"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Build Tools",
]
dependencies = [
    "semver>=3.0",
    "portalocker>=2.7",
]

[project.optional-dependencies]
test = [
    "pytest>=7.4",
]

[tool.hatch.build.targets.wheel]
packages = ["componentcargo"]

[tool.hatch.build.targets.sdist]
include = ["componentcargo", "tests", "pyproject.toml"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py311"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.11"
warn_unused_ignores = true
warn_redundant_casts = true
