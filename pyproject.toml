[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stencil"
version = "0.1.0"
description = "HTML and JSON escaping helpers and a parser for Jinja-like template syntax"
requires-python = ">=3.10"
dependencies = []
keywords = ["html", "escaping", "json", "template", "parser", "jinja"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: HTML",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["stencil"]

[tool.pytest.ini_options]
addopts = "-ra"
