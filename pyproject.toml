[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "trueauth"
version = "0.1.0"
description = "User, identity and audit-log models for an authentication service, with signed cookie sessions and hCaptcha verification"
requires-python = ">=3.10"
keywords = ["authentication", "users", "identity", "audit-log", "sessions", "captcha", "bcrypt"]
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
    "Topic :: System :: Systems Administration :: Authentication/Directory",
    "Topic :: Database",
]
dependencies = [
    "bcrypt",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["trueauth"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
