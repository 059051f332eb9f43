"""Engine services: submission, polling, cancellation and the facade."""

from .cancellation import CancellationChannel, CancellationService, CredentialStore
from .container import build_engine
from .generation import GenerationEngine
from .polling import PollingLoop
from .progress import ProgressReporter, ProgressTracker
from .submission import JobSubmitter

__all__ = [
    "CancellationChannel",
    "CancellationService",
    "CredentialStore",
    "GenerationEngine",
    "JobSubmitter",
    "PollingLoop",
    "ProgressReporter",
    "ProgressTracker",
    "build_engine",
]
