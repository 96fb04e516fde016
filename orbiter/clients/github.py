"""Public source hosting API client used to browse and download templates."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

import httpx

from orbiter.core.config import TemplateSettings
from orbiter.utils.http import error_message


class GitHubContentsError(Exception):
    """Raised when the contents API or a raw download fails."""


class GitHubContentsClient:
    """Read directory listings and files of the template repository."""

    def __init__(
        self,
        settings: TemplateSettings,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
            headers={"Accept": "application/vnd.github+json"},
        )

    async def _get(self, url: str) -> httpx.Response:
        try:
            async with self._client() as client:
                return await client.get(url)
        except httpx.HTTPError as exc:
            raise GitHubContentsError(f"Request to {url} failed: {exc}") from exc

    async def list_directory(self, path: str) -> List[Dict[str, Any]]:
        """Entries (``name``, ``type``, ``download_url``) below ``path``."""
        url = (
            f"{self._settings.github_api_url.rstrip('/')}/repos/"
            f"{self._settings.repository}/contents/{path.strip('/')}"
        )
        response = await self._get(url)
        if response.is_error:
            raise GitHubContentsError(f"GitHub API error: {error_message(response)}")
        payload = response.json()
        if not isinstance(payload, list):
            raise GitHubContentsError(f"{path} is not a directory.")
        return payload

    async def download(self, url: str) -> bytes:
        response = await self._get(url)
        if response.is_error:
            raise GitHubContentsError(f"Failed to download {url}: {error_message(response)}")
        return response.content

    async def get_raw_json(self, path: str) -> Any:
        """Fetch and decode a JSON file from the repository's main branch."""
        url = f"{self._settings.raw_base_url.rstrip('/')}/{path.lstrip('/')}"
        return json.loads(await self.download(url))


__all__ = ["GitHubContentsClient", "GitHubContentsError"]
