"""Shared ``requests`` session handling for the REST clients."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional
from urllib.parse import urlparse

import requests

from netpolicy_sync.errors import ResourceNotFound, TransportError

LOG = logging.getLogger(__name__)


class APIClient:
    """Thin wrapper around a :class:`requests.Session` bound to one base URL.

    HTTP 404 responses raise :class:`ResourceNotFound`; every other failure
    (connection errors, timeouts, non-2xx responses, undecodable bodies) is
    logged with the component, method and host and raised as
    :class:`TransportError`.
    """

    component = "http"

    def __init__(
        self,
        base_url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        auth: Optional[tuple[str, str]] = None,
        timeout: float = 10.0,
        verify: bool = True,
        user_agent: str = "netpolicy-sync",
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "application/json",
                "Content-Type": "application/json",
            }
        )
        if headers:
            self.session.headers.update(headers)
        if auth:
            self.session.auth = auth
        self.session.verify = verify

    @property
    def hostname(self) -> str:
        return urlparse(self.base_url).hostname or self.base_url

    def url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json_body: Optional[Any] = None,
        caller: str = "request",
    ) -> Any:
        url = self.url(path)
        try:
            response = self.session.request(
                method.upper(),
                url,
                params=params,
                json=json_body,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            LOG.error(
                "%s %s failed: %s",
                method.upper(),
                url,
                exc,
                extra={"component": self.component, "method": caller},
            )
            raise TransportError(
                f"{method.upper()} {url} failed: {exc}",
                component=self.component,
                method=caller,
                target=self.hostname,
            ) from exc

        if response.status_code == 404:
            raise ResourceNotFound(
                f"{method.upper()} {url} returned 404",
                component=self.component,
                method=caller,
                target=self.hostname,
            )
        if not response.ok:
            LOG.error(
                "%s %s failed: %s %s",
                method.upper(),
                url,
                response.status_code,
                response.text[:200],
                extra={"component": self.component, "method": caller},
            )
            raise TransportError(
                f"{method.upper()} {url} failed with status {response.status_code}",
                status=response.status_code,
                component=self.component,
                method=caller,
                target=self.hostname,
            )

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(
                f"{method.upper()} {url} returned invalid JSON",
                status=response.status_code,
                component=self.component,
                method=caller,
                target=self.hostname,
            ) from exc

    def get(self, path: str, *, params: Any = None, caller: str = "get") -> Any:
        return self.request("GET", path, params=params, caller=caller)
