"""
Sopen error taxonomy.

Fatal errors propagate to the top-level boot routine, which performs the
single termination action. Advisory failures never become exceptions outside
the point where they are dispatched; they are converted to log events.
"""

from typing import Optional


class SopenError(Exception):
    """Base class for all Sopen errors."""


class FatalDependencyError(SopenError):
    """A Fatal-criticality dependency could not be connected."""

    def __init__(self, dependency: str, cause: Optional[BaseException] = None):
        self.dependency = dependency
        self.cause = cause
        detail = f"{type(cause).__name__}: {cause}" if cause is not None else "unknown error"
        super().__init__(f"Fatal dependency '{dependency}' unavailable - {detail}")


class BootFailure(SopenError):
    """Boot cannot continue. The process must exit with ``exit_code``."""

    exit_code = 1

    def __init__(self, phase: str, cause: BaseException):
        self.phase = phase
        self.cause = cause
        super().__init__(f"Boot failed during {phase}: {cause}")


class InvalidBootTransition(SopenError):
    """A boot phase transition that is not strictly forward."""


class PublishUnavailableError(SopenError):
    """The active publish pipeline cannot accept work right now."""
