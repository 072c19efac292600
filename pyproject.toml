[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mwork"
version = "0.1.0"
description = "Domain logic for a casting marketplace: casting applications, promotions, reviews, subscriptions with plan limits, and uploads"
requires-python = ">=3.10"
dependencies = []
keywords = ["casting", "marketplace", "subscriptions", "promotions", "reviews", "uploads", "domain"]
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
    "Topic :: Internet :: WWW/HTTP :: Dynamic Content",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["mwork"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
