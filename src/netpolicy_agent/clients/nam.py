"""Client for the policy catalogue (network automation manager) API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from .http import APIClient

POLICY_PATH = "/api/v2/viti_networkpolicies"


class NAMClient(APIClient):
    component = "nam"

    @classmethod
    def from_options(cls, options: Dict[str, Any], **kwargs) -> "NAMClient":
        token = options.get("token")
        headers = {"Authorization": f"Bearer {token}"} if token else None
        return cls(str(options["url"]), headers=headers, **kwargs)

    def network_policies(self) -> List[Dict[str, Any]]:
        """Return every policy with its endpoints expanded inline."""

        policies: List[Dict[str, Any]] = []
        next_url: Optional[str] = POLICY_PATH
        params: Optional[Dict[str, Any]] = {"expand": 1}
        while next_url:
            page = self.get(next_url, params=params, caller="network_policies")
            policies.extend(page.get("results") or [])
            next_url = page.get("next")
            params = None
        return policies
