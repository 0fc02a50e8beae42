[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "sclib"
version = "2.0.0"
description = "Small building blocks: a double-ended queue, size and power-of-two helpers, an RC4 byte generator, signal handling, sockets, pipes and a poller"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "queue",
    "deque",
    "rc4",
    "signals",
    "sockets",
    "poll",
    "epoll",
    "kqueue",
    "pipe",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Networking",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
sclib-queue-demo = "sclib.ringqueue:main"

[tool.hatch.build.targets.wheel]
packages = ["sclib"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
