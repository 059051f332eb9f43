"""Job submission, polling and cancellation engine for the huatu image backend."""

from .services.container import build_engine
from .services.generation import GenerationEngine

__all__ = ["GenerationEngine", "build_engine"]
