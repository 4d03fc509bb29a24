[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "approxgame"
version = "1.0.0"
description = "A networked polynomial-approximation game: a TCP server and a client that play it"
requires-python = ">=3.10"
dependencies = []
keywords = ["game", "polynomial", "approximation", "tcp", "client-server"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
approx-server = "approxgame.server:main"
approx-client = "approxgame.client:main"

[tool.hatch.build.targets.wheel]
packages = ["approxgame"]

[tool.pytest.ini_options]
addopts = "-ra"
