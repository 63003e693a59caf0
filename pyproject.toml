[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "tgimg"
version = "0.1.0"
description = "Image pipeline for Telegram Mini Apps: resized variants, content-addressed filenames, thumbhash placeholders and a manifest"
requires-python = ">=3.10"
keywords = ["image", "thumbhash", "webp", "avif", "jpeg", "telegram", "optimization", "manifest"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics :: Graphics Conversion",
]
dependencies = [
    "pillow",
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
tgimg = "tgimg.cli:main"
tgimg-fixtures = "tgimg.fixtures:main"

[tool.hatch.build.targets.wheel]
packages = ["tgimg"]

[tool.pytest.ini_options]
addopts = "-ra"
