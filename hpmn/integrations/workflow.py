"""HTTP client for the workflow/webhook endpoints that actions invoke."""

from __future__ import annotations

import json
import logging
from typing import Any
from urllib.parse import urljoin

import httpx

from hpmn.errors import RemoteCallError

logger = logging.getLogger(__name__)


def _query_value(value: Any) -> str | int | float | bool:
    """Query strings carry scalars; nested values are sent as JSON text."""
    if isinstance(value, (str, int, float, bool)):
        return value
    if value is None:
        return ""
    return json.dumps(value)


class WorkflowClient:
    """Calls webhook URLs. Relative URLs are resolved against *base_url*."""

    def __init__(self, base_url: str = "", api_token: str = "", timeout: float = 30.0) -> None:
        self._base_url = base_url
        self._api_token = api_token
        self._timeout = timeout

    def resolve_url(self, url: str, endpoint: str | None = None) -> str:
        if not url.startswith(("http://", "https://")):
            if not self._base_url:
                msg = f"Relative webhook URL {url!r} and no WORKFLOW_URL configured"
                raise RemoteCallError(msg)
            url = urljoin(self._base_url.rstrip("/") + "/", url.lstrip("/"))
        if endpoint:
            url = f"{url.rstrip('/')}/{endpoint.lstrip('/')}"
        return url

    async def call(
        self,
        url: str,
        *,
        method: str = "GET",
        params: dict[str, Any] | None = None,
        body: Any = None,
        endpoint: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> Any:
        """Invoke a workflow and return its JSON body.

        Raises RemoteCallError on transport failure or a non-2xx status.
        """
        method = method.upper()
        target = self.resolve_url(url, endpoint)

        request_headers = {"Content-Type": "application/json", **(headers or {})}
        if self._api_token:
            request_headers.setdefault("Authorization", f"Bearer {self._api_token}")

        query = {key: _query_value(value) for key, value in (params or {}).items()}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(
                    method,
                    target,
                    params=query or None,
                    json=body,
                    headers=request_headers,
                )
        except httpx.HTTPError as exc:
            logger.warning("Workflow call to %s failed: %s", target, exc)
            msg = f"Workflow call to {target} failed"
            raise RemoteCallError(msg) from exc

        if not resp.is_success:
            msg = f"Workflow call failed with status: {resp.status_code}"
            raise RemoteCallError(msg)

        try:
            return resp.json()
        except ValueError as exc:
            msg = f"Workflow at {target} returned a non-JSON body"
            raise RemoteCallError(msg) from exc
