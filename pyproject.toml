[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "pyprocps"
version = "0.0.1"
description = "Process and memory inspection tools: pgrep, pidof and free, built on /proc"
requires-python = ">=3.10"
dependencies = []
keywords = ["procps", "pgrep", "pidof", "free", "proc", "process", "memory"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Topic :: Utilities",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
procps = "pyprocps.cli:main"
pgrep-py = "pyprocps.pgrep:main"
pidof-py = "pyprocps.pidof:main"
free-py = "pyprocps.free:main"

[tool.hatch.build.targets.wheel]
packages = ["pyprocps"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
