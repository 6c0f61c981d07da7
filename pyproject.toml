[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rfbenc"
version = "0.10.0.dev0"
description = "Framebuffers, pixel format conversion and RFB (VNC) rectangle encoders: raw, ZRLE and Tight"
requires-python = ">=3.10"
dependencies = [
    "pillow",
]
keywords = ["vnc", "rfb", "framebuffer", "zrle", "tight", "encoder", "pixel-format"]
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
    "Topic :: System :: Networking",
    "Topic :: Multimedia :: Graphics",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["rfbenc"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"
