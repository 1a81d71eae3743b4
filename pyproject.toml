[build-system]
requires = ["setuptools>=61.0"]
build-backend = "setuptools.build_meta"

[project]
name = "rediscmd"
version = "0.1.0"
description = "Typed Redis command objects and command builders that parse server replies into Python values"
requires-python = ">=3.10"
dependencies = []
keywords = ["redis", "commands", "replies", "keys", "strings", "hashes"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Operating System :: OS Independent",
    "Topic :: Database :: Front-Ends",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.setuptools.packages.find]
include = ["rediscmd*"]

[tool.pytest.ini_options]
addopts = "-ra"
