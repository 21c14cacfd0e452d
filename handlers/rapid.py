"""Scraper API marketplace client."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from utils.exceptions import ConfigurationError


class RapidApiClient:
    """Adds marketplace auth headers to JSON calls against one API host."""

    def __init__(self, host: str, api_key: Optional[str], client: httpx.AsyncClient) -> None:
        if not api_key:
            raise ConfigurationError("RAPID_API_KEY is not set", {"host": host})
        self.host = host
        self.base_url = f"https://{host}/"
        self._api_key = api_key
        self._client = client

    def _headers(self) -> Dict[str, str]:
        return {
            "X-RapidAPI-Key": self._api_key,
            "X-RapidAPI-Host": self.host,
        }

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        resp = await self._client.get(self.base_url + path, params=params, headers=self._headers())
        resp.raise_for_status()
        return resp.json()

    async def post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        resp = await self._client.post(self.base_url + path, json=payload, headers=self._headers())
        resp.raise_for_status()
        return resp.json()
