[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "stuntskit"
version = "0.1.0"
description = "Tools for the Stunts DOS game: DOS memory and file services, MZ executable patching and resource decompression"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "stunts",
    "dos",
    "mz",
    "exe",
    "decompression",
    "resources",
    "reverse-engineering",
]
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
    "Topic :: System :: Emulators",
    "Topic :: Games/Entertainment",
    "Topic :: Software Development :: Disassemblers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
stuntskit-drvcombiner = "stuntskit.drvcombiner:main"
stuntskit-execombiner = "stuntskit.execombiner:main"

[tool.hatch.build.targets.wheel]
packages = ["stuntskit"]

[tool.pytest.ini_options]
addopts = "-ra"
