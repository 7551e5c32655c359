[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "livestream"
version = "0.1.0"
description = "Live streaming building blocks: AMF0/AMF3 codec, FLV tags and recording, MPEG-TS muxing, AAC/MP3 parsing and server configuration"
requires-python = ">=3.10"
keywords = ["rtmp", "amf", "amf0", "amf3", "flv", "mpeg-ts", "hls", "aac", "mp3", "live streaming"]
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
    "Topic :: Multimedia :: Video",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["livestream"]

[tool.hatch.build.targets.sdist]
include = ["livestream", "tests", "README.md", "pyproject.toml"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
