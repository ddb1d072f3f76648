"""Vector index adapter for a Qdrant server, over its REST API."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from hpmn.errors import RemoteCallError
from hpmn.store.models import VectorHit

logger = logging.getLogger(__name__)


class QdrantIndex:
    """Thin async client for the handful of Qdrant endpoints the pipeline needs."""

    def __init__(self, url: str, api_key: str = "", timeout: float = 20.0) -> None:
        self._url = url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["api-key"] = self._api_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        url = f"{self._url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.request(
                    method, url, json=json, params=params, headers=self._headers()
                )
        except httpx.HTTPError as exc:
            msg = f"Vector index request failed: {method} {path}"
            raise RemoteCallError(msg) from exc

        if resp.status_code >= 300:
            logger.warning(
                "Qdrant %s %s returned %d: %s", method, path, resp.status_code, resp.text[:200]
            )
            msg = f"Vector index returned HTTP {resp.status_code} for {method} {path}"
            raise RemoteCallError(msg)
        return resp.json()

    async def create_collection(self, name: str, dim: int) -> None:
        await self._request(
            "PUT",
            f"/collections/{name}",
            json={"vectors": {"size": dim, "distance": "Cosine"}},
        )
        logger.info("Created collection %s (dim=%d)", name, dim)

    async def delete_collection(self, name: str) -> None:
        await self._request("DELETE", f"/collections/{name}")
        logger.info("Deleted collection %s", name)

    async def upsert(
        self,
        collection: str,
        point_id: str,
        vector: list[float],
        payload: dict[str, Any] | None = None,
    ) -> None:
        await self._request(
            "PUT",
            f"/collections/{collection}/points",
            json={"points": [{"id": point_id, "vector": vector, "payload": payload or {}}]},
            params={"wait": "true"},
        )

    async def search(
        self,
        collection: str,
        vector: list[float],
        limit: int,
        with_payload: bool = True,
    ) -> list[VectorHit]:
        data = await self._request(
            "POST",
            f"/collections/{collection}/points/search",
            json={"vector": vector, "limit": limit, "with_payload": with_payload},
        )
        return [
            VectorHit(id=str(point["id"]), score=point["score"], payload=point.get("payload"))
            for point in data.get("result", [])
        ]

    async def delete(self, collection: str, point_id: str) -> None:
        await self._request(
            "POST",
            f"/collections/{collection}/points/delete",
            json={"points": [point_id]},
            params={"wait": "true"},
        )
