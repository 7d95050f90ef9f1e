"""Concrete clients for the systems a reconciliation pass talks to."""

from .fortios import FortiOSClient  # noqa: F401
from .git import GitCLIRepository  # noqa: F401
from .http import APIClient  # noqa: F401
from .nam import NAMClient  # noqa: F401
from .netbox import NetboxClient  # noqa: F401
from .nsx import NSXClient  # noqa: F401

__all__ = [
    "APIClient",
    "FortiOSClient",
    "GitCLIRepository",
    "NAMClient",
    "NetboxClient",
    "NSXClient",
]
