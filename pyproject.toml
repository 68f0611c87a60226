[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "extfs"
version = "0.1.0"
description = "A small ext-style block-group filesystem on a disk image, with an open-file table, scheduler and semaphore model, keyboard decoding and a command-line tool"
requires-python = ">=3.10"
dependencies = []
keywords = ["filesystem", "ext", "inode", "disk-image", "block-group", "teaching"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Filesystems",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
extfs = "extfs.shell:main"

[tool.hatch.build.targets.wheel]
packages = ["extfs"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
