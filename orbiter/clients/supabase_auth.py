"""
Auth provider client.

Builds OAuth authorization URLs and talks to the provider's session endpoints
(session validation, refresh) and its REST interface for memberships.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import httpx

from orbiter.core.config import AuthSettings
from orbiter.schemas import SUPPORTED_OAUTH_PROVIDERS, AuthSession
from orbiter.utils.http import error_message

logger = logging.getLogger(__name__)


class AuthProviderError(Exception):
    """Raised when the auth provider rejects a request."""


class SupabaseAuthClient:
    """Thin client over the auth provider's HTTP interface."""

    def __init__(
        self,
        settings: AuthSettings,
        *,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._timeout = timeout
        self._transport = transport

    @property
    def base_url(self) -> str:
        return self._settings.supabase_url.rstrip("/")

    def _validate_config(self) -> None:
        missing = []
        if not self._settings.supabase_url:
            missing.append("SUPABASE_URL")
        if not self._settings.supabase_anon_key:
            missing.append("SUPABASE_ANON_KEY")
        if missing:
            raise AuthProviderError(
                "Auth provider is not configured. Missing env vars: " + ", ".join(missing)
            )

    def _headers(self, access_token: Optional[str] = None) -> Dict[str, str]:
        headers = {"apikey": self._settings.supabase_anon_key}
        headers["Authorization"] = f"Bearer {access_token or self._settings.supabase_anon_key}"
        return headers

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    def build_authorization_url(self, provider: str, redirect_to: str) -> str:
        """Construct the provider consent URL; tokens come back in the fragment."""
        self._validate_config()
        if provider not in SUPPORTED_OAUTH_PROVIDERS:
            raise AuthProviderError(
                f"Unsupported OAuth provider '{provider}'. "
                f"Choose one of: {', '.join(SUPPORTED_OAUTH_PROVIDERS)}"
            )
        query = urlencode({"provider": provider, "redirect_to": redirect_to})
        return f"{self.base_url}/auth/v1/authorize?{query}"

    async def get_user(self, access_token: str) -> Dict[str, Any]:
        """Return the user owning ``access_token``."""
        self._validate_config()
        async with self._client() as client:
            response = await client.get(
                f"{self.base_url}/auth/v1/user", headers=self._headers(access_token)
            )
        if response.status_code != httpx.codes.OK:
            raise AuthProviderError(error_message(response))
        return response.json()

    async def establish_session(
        self, access_token: str, refresh_token: Optional[str]
    ) -> AuthSession:
        """Validate a token pair returned by the OAuth redirect."""
        user = await self.get_user(access_token)
        return AuthSession(access_token=access_token, refresh_token=refresh_token, user=user)

    async def refresh_session(self, refresh_token: str) -> AuthSession:
        """Exchange a refresh token for a new session."""
        self._validate_config()
        async with self._client() as client:
            response = await client.post(
                f"{self.base_url}/auth/v1/token",
                params={"grant_type": "refresh_token"},
                json={"refresh_token": refresh_token},
                headers=self._headers(),
            )
        if response.status_code != httpx.codes.OK:
            raise AuthProviderError(error_message(response))

        payload = response.json()
        access_token = payload.get("access_token")
        if not access_token:
            raise AuthProviderError("No session returned when refreshing token.")
        return AuthSession(
            access_token=access_token,
            refresh_token=payload.get("refresh_token") or refresh_token,
            expires_in=payload.get("expires_in"),
            user=payload.get("user"),
        )

    async def list_memberships(self, access_token: str) -> List[Dict[str, Any]]:
        """Organization memberships of the signed-in user, newest first."""
        self._validate_config()
        async with self._client() as client:
            response = await client.get(
                f"{self.base_url}/rest/v1/members",
                params={
                    "select": "*,organizations(id,name,created_at)",
                    "order": "created_at.desc",
                },
                headers=self._headers(access_token),
            )
        if response.status_code != httpx.codes.OK:
            logger.error("Error fetching memberships: %s", response.text)
            raise AuthProviderError(error_message(response))
        return response.json()


__all__ = ["AuthProviderError", "SupabaseAuthClient"]
