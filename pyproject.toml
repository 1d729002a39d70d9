[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kvlabs"
version = "0.1.0"
description = "Building blocks for fault-tolerant key/value services: an in-process simulated RPC network, a primary/backup lock service and a sharded on-disk key store."
requires-python = ">=3.10"
dependencies = []
keywords = ["rpc", "distributed-systems", "lock-service", "key-value", "sharding", "simulation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
lockd = "kvlabs.lockcli:lockd_main"
lockc = "kvlabs.lockcli:lockc_main"

[tool.hatch.build.targets.wheel]
packages = ["kvlabs"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
