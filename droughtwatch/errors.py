"""
Error taxonomy for the drought pipeline.

Every failure the pipeline can surface is a ``DroughtWatchError`` with a
machine-readable ``kind`` so callers (dashboards, exports) can branch on it
without string matching:

- resolution: ``InvalidCoordinate``, ``InvalidGeometry``, ``LookupFailed``
- fetch: ``ProviderUnavailable``, ``ProviderTimeout``
- alignment: ``IncompleteData``
- supersession: ``Cancelled`` (dropped by the orchestrator, never shown)
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class DroughtWatchError(Exception):
    """Base exception carrying a kind code and structured context."""

    kind = "error"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.__class__.__name__,
            "kind": self.kind,
            "message": self.message,
            "context": self.context,
        }


class InvalidCoordinate(DroughtWatchError):
    kind = "invalid_coordinate"


class InvalidGeometry(DroughtWatchError):
    kind = "invalid_geometry"


class LookupFailed(DroughtWatchError):
    kind = "lookup_failed"


class ProviderUnavailable(DroughtWatchError):
    kind = "provider_unavailable"


class ProviderTimeout(DroughtWatchError):
    kind = "provider_timeout"


class IncompleteData(DroughtWatchError):
    kind = "incomplete_data"


class Cancelled(DroughtWatchError):
    kind = "cancelled"


# raised by the fetch stage; both are retried
TRANSIENT_ERRORS = (ProviderUnavailable, ProviderTimeout)


__all__ = [
    "DroughtWatchError",
    "InvalidCoordinate",
    "InvalidGeometry",
    "LookupFailed",
    "ProviderUnavailable",
    "ProviderTimeout",
    "IncompleteData",
    "Cancelled",
    "TRANSIENT_ERRORS",
]
