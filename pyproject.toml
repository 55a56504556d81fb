[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bookforge"
version = "0.9.0"
description = "Static website generator for books and collections written in Markdown"
requires-python = ">=3.10"
keywords = ["static-site-generator", "markdown", "books", "web-fiction", "html", "jinja2"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Text Processing :: Markup :: HTML",
]
dependencies = [
    "pyyaml",
    "markdown",
    "pygments",
    "jinja2",
    "markupsafe",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bookforge = "bookforge.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["bookforge"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
