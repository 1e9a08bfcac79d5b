[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "minicore"
version = "0.3.0"
description = "A simulated hobby x86 kernel: VGA text terminal, free-list heap, read-only file system, interrupts, scheduler and shell"
requires-python = ">=3.10"
dependencies = []
keywords = ["kernel", "simulation", "emulator", "shell", "heap", "scheduler", "vga"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
minicore = "minicore.kernel:main"

[tool.hatch.build.targets.wheel]
packages = ["minicore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
