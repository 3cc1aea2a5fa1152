"""
Typed error taxonomy for the Guardforce service layer.

Every error raised out of a public service operation derives from
GuardforceError and carries a machine-readable ``code`` plus optional
``details``. Callers (route handlers, jobs) map these to their own surface.

Error Types:
- NotFoundError: A referenced lead, shift, guard or assignment does not exist
- ConfigurationError: No active scoring config, or a malformed scoring rule
- InsufficientDataError: Not enough history for an analytical operation
- ValidationError: Input or state violates a business rule (bad status
  transition, missing override reason, expired response window, ...)

Degrade-gracefully seams (rule evaluation, probability estimation, cached
field write-back, per-lead batch failures) never raise these; they log and
fall back instead.
"""

from typing import Any, Dict, Optional


class GuardforceError(Exception):
    """Base class for all service-layer errors."""

    default_code = 'GUARDFORCE_ERROR'

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


class NotFoundError(GuardforceError):
    """A referenced entity is missing."""

    default_code = 'NOT_FOUND'


class ConfigurationError(GuardforceError):
    """No usable scoring configuration, or an invalid rule definition."""

    default_code = 'CONFIGURATION_ERROR'


class InsufficientDataError(GuardforceError):
    """Not enough historical data to compute a result."""

    default_code = 'INSUFFICIENT_DATA'


class ValidationError(GuardforceError):
    """A business rule rejected the request."""

    default_code = 'VALIDATION_ERROR'


__all__ = [
    'GuardforceError',
    'NotFoundError',
    'ConfigurationError',
    'InsufficientDataError',
    'ValidationError',
]
