[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sentrylite"
version = "0.1.0"
description = "Building blocks for error-reporting clients: event payloads, rate limits, W3C baggage, goroutine stack dump parsing and event processors."
requires-python = ">=3.10"
dependencies = []
keywords = ["error-reporting", "rate-limiting", "baggage", "w3c", "stacktrace", "events"]
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
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["sentrylite"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
