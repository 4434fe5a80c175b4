[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "dperf"
version = "0.1.0"
description = "Configuration checking, checksum and ARP helpers for a high-rate network load generator"
requires-python = ">=3.10"
dependencies = []
keywords = ["network", "benchmark", "load-testing", "tcp", "udp", "arp", "checksum", "configuration"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Intended Audience :: Telecommunications Industry",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: System :: Benchmark",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
dperf = "dperf.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["dperf"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
