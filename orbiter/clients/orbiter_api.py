"""
Hosted sites API client.

Every call takes the credential to authenticate with; API keys and OAuth
tokens travel in different headers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from orbiter.core.config import ApiSettings
from orbiter.models.credentials import CredentialRecord, KeyType
from orbiter.schemas import FunctionDeployment, Site, SiteVersion
from orbiter.utils.http import error_message, unwrap_data

logger = logging.getLogger(__name__)


class OrbiterAPIError(Exception):
    """Raised when the hosted API returns a non-success status."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def __str__(self) -> str:
        return f"{self.message} (HTTP {self.status_code})"


class OrbiterAPIClient:
    """Create, list, update, delete and roll back hosted sites."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._settings.base_url.rstrip("/"),
            timeout=self._settings.timeout_seconds,
            transport=self._transport,
            headers={"Source": self._settings.source},
        )

    async def _request(
        self,
        method: str,
        path: str,
        credential: CredentialRecord,
        *,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        async with self._client() as client:
            response = await client.request(
                method, path, json=json, params=params, headers=credential.auth_headers()
            )
        if response.is_error:
            logger.debug("%s %s failed: %s", method, path, response.text)
            raise OrbiterAPIError(response.status_code, error_message(response))
        return unwrap_data(response)

    async def verify_key(self, api_key: str) -> None:
        """Lightweight authenticated read used to validate an API key."""
        credential = CredentialRecord(access_token=api_key, key_type=KeyType.APIKEY)
        await self._request("GET", "/sites", credential)

    async def request_upload_key(self, credential: CredentialRecord) -> str:
        """Issue a one-shot key for the content upload service."""
        data = await self._request("POST", "/keys/upload_key", credential, json={})
        if not isinstance(data, str) or not data:
            raise OrbiterAPIError(500, "Upload key missing from response.")
        return data

    async def create_site(
        self,
        credential: CredentialRecord,
        *,
        cid: str,
        subdomain: str,
        org_id: Optional[str] = None,
    ) -> Optional[Site]:
        body: Dict[str, Any] = {"cid": cid, "subdomain": subdomain}
        if org_id:
            body["orgId"] = org_id
        data = await self._request("POST", "/sites", credential, json=body)
        return Site.model_validate(data) if isinstance(data, dict) else None

    async def list_sites(
        self, credential: CredentialRecord, *, domain: Optional[str] = None
    ) -> List[Site]:
        params = {"domain": domain} if domain else None
        data = await self._request("GET", "/sites", credential, params=params)
        return [Site.model_validate(item) for item in data or []]

    async def update_site(self, credential: CredentialRecord, site_id: str, *, cid: str) -> None:
        await self._request("PUT", f"/sites/{site_id}", credential, json={"cid": cid})

    async def delete_site(self, credential: CredentialRecord, site_id: str) -> None:
        await self._request("DELETE", f"/sites/{site_id}", credential)

    async def list_versions(self, credential: CredentialRecord, site_id: str) -> List[SiteVersion]:
        data = await self._request("GET", f"/sites/{site_id}/versions", credential)
        return [SiteVersion.model_validate(item) for item in data or []]

    async def deploy_function(
        self, credential: CredentialRecord, site_id: str, deployment: FunctionDeployment
    ) -> Any:
        return await self._request(
            "POST",
            f"/sites/{site_id}/functions",
            credential,
            json=deployment.model_dump(),
        )

    async def account_association(self, credential: CredentialRecord, site_id: str) -> Any:
        """Signed Farcaster account association for the site's domain."""
        return await self._request(
            "POST", f"/farcaster/account_association/{site_id}", credential
        )


__all__ = ["OrbiterAPIClient", "OrbiterAPIError"]
