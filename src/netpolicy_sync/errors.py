"""Error kinds raised by the reconciliation core and its collaborators."""

from __future__ import annotations

from typing import Dict, Optional


class SyncError(RuntimeError):
    """Base class carrying the component/method/target a failure came from."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        method: Optional[str] = None,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.component = component
        self.method = method
        self.target = target

    def context(self) -> Dict[str, str]:
        fields = {
            "component": self.component,
            "method": self.method,
            "target": self.target,
        }
        return {key: value for key, value in fields.items() if value}


class ResourceNotFound(SyncError):
    """The remote system reports the resource as absent (HTTP 404)."""


class TransportError(SyncError):
    """A call to an external system failed for any reason other than 404."""

    def __init__(self, message: str, *, status: Optional[int] = None, **context) -> None:
        super().__init__(message, **context)
        self.status = status


class ConfigurationError(SyncError):
    """Missing or malformed configuration for a policy, target or the agent."""
