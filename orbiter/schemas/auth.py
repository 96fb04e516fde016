"""Schemas related to the auth provider and OAuth flows."""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field

OAuthProviderName = Literal["github", "google"]

SUPPORTED_OAUTH_PROVIDERS: tuple[str, ...] = ("github", "google")


class OAuthCallbackParams(BaseModel):
    """Query parameters forwarded from the browser's URL fragment."""

    access_token: Optional[str] = Field(
        None, description="Access token issued by the auth provider."
    )
    refresh_token: Optional[str] = Field(
        None, description="Refresh token paired with the access token."
    )
    expires_in: Optional[int] = None
    token_type: Optional[str] = None
    error: Optional[str] = None
    error_description: Optional[str] = None


class AuthSession(BaseModel):
    """A session established with the auth provider."""

    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    user: Optional[Dict[str, Any]] = None


__all__ = [
    "AuthSession",
    "OAuthCallbackParams",
    "OAuthProviderName",
    "SUPPORTED_OAUTH_PROVIDERS",
]
