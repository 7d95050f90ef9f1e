"""Virtualization manager client for the NSX search and policy APIs."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from netpolicy_sync.clients import VirtualizationManager
from netpolicy_sync.config import APIEndpoint

from .http import APIClient


def manager_base_url(url: str) -> str:
    """Strip the API suffixes an endpoint URL is usually configured with."""

    return url.replace("/api/v1", "").replace("/global-manager", "").rstrip("/")


class NSXClient(APIClient, VirtualizationManager):
    component = "nsx"

    @classmethod
    def from_endpoint(cls, endpoint: APIEndpoint, **kwargs) -> "NSXClient":
        auth = None
        if endpoint.username is not None:
            auth = (endpoint.username, endpoint.password or "")
        return cls(manager_base_url(endpoint.url), auth=auth, **kwargs)

    def _paginated(self, path: str, params: Dict[str, Any], caller: str) -> List[Any]:
        results: List[Any] = []
        cursor: Optional[str] = None
        while True:
            page_params = dict(params)
            if cursor:
                page_params["cursor"] = cursor
            page = self.get(path, params=page_params, caller=caller)
            results.extend(page.get("results") or [])
            cursor = page.get("cursor")
            if not cursor or len(results) >= int(page.get("result_count", 0) or 0):
                return results

    def search(self, query: str, global_manager: bool = False) -> List[Dict[str, Any]]:
        prefix = "/global-manager/api/v1" if global_manager else "/api/v1"
        return self._paginated(f"{prefix}/search/query", {"query": query}, "search")

    def group_member_addresses(self, policy_path: str) -> List[str]:
        return self._paginated(
            f"/policy/api/v1{policy_path}/members/ip-addresses",
            {},
            "group_member_addresses",
        )

    def virtual_interfaces(self, owner_vm_id: str) -> List[Dict[str, Any]]:
        return self._paginated(
            "/api/v1/fabric/vifs", {"owner_vm_id": owner_vm_id}, "virtual_interfaces"
        )
