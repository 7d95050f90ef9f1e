"""Firewall client for the FortiOS CMDB REST API."""

from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib.parse import quote

from netpolicy_sync.clients import FirewallClient
from netpolicy_sync.config import AddressFamily, APIEndpoint
from netpolicy_sync.errors import ResourceNotFound

from .http import APIClient

CMDB = "/api/v2/cmdb/firewall"

ADDRESS_TABLE = {AddressFamily.IPV4: "address", AddressFamily.IPV6: "address6"}
GROUP_TABLE = {AddressFamily.IPV4: "addrgrp", AddressFamily.IPV6: "addrgrp6"}


def _object_path(table: str, name: Optional[str] = None) -> str:
    if name is None:
        return f"{CMDB}/{table}"
    return f"{CMDB}/{table}/{quote(name, safe='')}"


class FortiOSClient(APIClient, FirewallClient):
    component = "fortios"

    @classmethod
    def from_endpoint(cls, endpoint: APIEndpoint, **kwargs) -> "FortiOSClient":
        headers = {"Authorization": f"Bearer {endpoint.key}"} if endpoint.key else None
        return cls(endpoint.url, headers=headers, **kwargs)

    def _first(self, path: str, params: Dict[str, Any], caller: str) -> Dict[str, Any]:
        data = self.get(path, params=params, caller=caller)
        results: List[Dict[str, Any]] = data.get("results") or []
        if isinstance(results, dict):
            return results
        if not results:
            raise ResourceNotFound(
                f"GET {path} returned no results",
                component=self.component,
                method=caller,
                target=self.hostname,
            )
        return results[0]

    # ------------------------------------------------------------------
    # Address objects
    # ------------------------------------------------------------------
    def get_address(self, family: AddressFamily, name: str, vdom: str) -> Dict[str, Any]:
        return self._first(
            _object_path(ADDRESS_TABLE[family], name), {"vdom": vdom}, "get_address"
        )

    def create_address(self, family: AddressFamily, payload: Dict[str, Any], vdom: str) -> None:
        self.request(
            "POST",
            _object_path(ADDRESS_TABLE[family]),
            params={"vdom": vdom},
            json_body=payload,
            caller="create_address",
        )

    def delete_address(self, family: AddressFamily, name: str, vdom: str) -> None:
        self.request(
            "DELETE",
            _object_path(ADDRESS_TABLE[family], name),
            params={"vdom": vdom},
            caller="delete_address",
        )

    def reference_count(self, family: AddressFamily, name: str, vdom: str) -> Optional[int]:
        record = self._first(
            _object_path(ADDRESS_TABLE[family], name),
            {"vdom": vdom, "with_meta": 1},
            "reference_count",
        )
        count = record.get("q_ref")
        return int(count) if count is not None else None

    # ------------------------------------------------------------------
    # Address groups
    # ------------------------------------------------------------------
    def get_address_group(self, family: AddressFamily, name: str, vdom: str) -> Dict[str, Any]:
        return self._first(
            _object_path(GROUP_TABLE[family], name), {"vdom": vdom}, "get_address_group"
        )

    def create_address_group(
        self, family: AddressFamily, payload: Dict[str, Any], vdom: str
    ) -> None:
        self.request(
            "POST",
            _object_path(GROUP_TABLE[family]),
            params={"vdom": vdom},
            json_body=payload,
            caller="create_address_group",
        )

    def update_address_group(
        self, family: AddressFamily, name: str, payload: Dict[str, Any], vdom: str
    ) -> None:
        self.request(
            "PUT",
            _object_path(GROUP_TABLE[family], name),
            params={"vdom": vdom},
            json_body=payload,
            caller="update_address_group",
        )
