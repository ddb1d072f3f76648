"""Embedding service adapters.

- ``HttpEmbeddingService``: POSTs text to a self-hosted embedding endpoint.
- ``OpenAIEmbeddingService``: uses the OpenAI embeddings API.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
import openai

from hpmn.errors import ConfigurationError, RemoteCallError

logger = logging.getLogger(__name__)


class HttpEmbeddingService:
    """Embedding endpoint speaking ``{"input": text}`` -> vector JSON."""

    def __init__(self, url: str, token: str = "", timeout: float = 20.0) -> None:
        if not url:
            msg = "EMBEDDING_URL is not configured"
            raise ConfigurationError(msg)
        self._url = url
        self._token = token
        self._timeout = timeout

    async def embed(self, text: str) -> list[float]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                resp = await client.post(self._url, json={"input": text}, headers=headers)
        except httpx.HTTPError as exc:
            msg = "Embedding request failed"
            raise RemoteCallError(msg) from exc

        if resp.status_code != 200:
            msg = f"Embedding service returned HTTP {resp.status_code}"
            raise RemoteCallError(msg)
        return self._extract(resp.json())

    @staticmethod
    def _extract(data: Any) -> list[float]:
        """Accept ``{"embedding": [...]}`` or OpenAI-style ``{"data": [{"embedding": [...]}]}``."""
        if isinstance(data, dict):
            if isinstance(data.get("embedding"), list):
                return [float(x) for x in data["embedding"]]
            items = data.get("data")
            if isinstance(items, list) and items and isinstance(items[0], dict):
                return [float(x) for x in items[0].get("embedding", [])]
        msg = "Embedding service returned an unrecognised payload"
        raise RemoteCallError(msg)


class OpenAIEmbeddingService:
    """Embeddings from the OpenAI API."""

    def __init__(self, api_key: str, model: str = "text-embedding-3-small") -> None:
        if not api_key:
            msg = "OPENAI_API_KEY is not configured"
            raise ConfigurationError(msg)
        self._client = openai.AsyncOpenAI(api_key=api_key)
        self._model = model

    async def embed(self, text: str) -> list[float]:
        try:
            response = await self._client.embeddings.create(model=self._model, input=text)
        except openai.OpenAIError as exc:
            msg = "OpenAI embedding request failed"
            raise RemoteCallError(msg) from exc
        return list(response.data[0].embedding)
