"""IPAM client for the NetBox prefixes API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import parse_qsl, urlparse

from netpolicy_sync.clients import IPAMClient
from netpolicy_sync.config import APIEndpoint

from .http import APIClient

PAGE_SIZE = 500


class NetboxClient(APIClient, IPAMClient):
    component = "netbox"

    @classmethod
    def from_endpoint(cls, endpoint: APIEndpoint, **kwargs) -> "NetboxClient":
        headers = {"Authorization": f"Token {endpoint.key}"} if endpoint.key else None
        base_url = endpoint.url.rstrip("/")
        if not base_url.endswith("/api"):
            base_url = f"{base_url}/api"
        return cls(base_url, headers=headers, **kwargs)

    def get_all(self, path: str, params: Any = None) -> List[Dict[str, Any]]:
        """Follow ``next`` links and return the results of every page."""

        out: List[Dict[str, Any]] = []
        next_url: Optional[str] = path
        while next_url:
            data = self.get(next_url, params=params, caller="get_all")
            out.extend(data.get("results") or [])
            next_url = data.get("next")
            # ``next`` already carries the query string
            params = None
        return out

    def prefixes(self, query: str) -> List[str]:
        """Return the prefixes selected by ``query``.

        ``query`` is a prefix list URL as copied from the IPAM UI or API, e.g.
        ``https://ipam.example.org/api/ipam/prefixes/?tag=web``.
        """

        parsed = urlparse(query)
        path = parsed.path
        if path.startswith("/api/"):
            path = path[len("/api"):]
        params = [(k, v) for k, v in parse_qsl(parsed.query) if k != "limit"]
        params.append(("limit", str(PAGE_SIZE)))
        return [
            str(record["prefix"])
            for record in self.get_all(path, params)
            if record.get("prefix")
        ]
