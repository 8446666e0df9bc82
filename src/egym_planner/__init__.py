"""egym-planner - LLM-backed weekly workout plan generation."""

import importlib.metadata

try:
    __version__ = importlib.metadata.version("egym-planner")
except importlib.metadata.PackageNotFoundError:
    __version__ = "unknown"
