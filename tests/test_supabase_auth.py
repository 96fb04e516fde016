from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from orbiter.clients.supabase_auth import AuthProviderError, SupabaseAuthClient
from orbiter.core.config import AuthSettings


def test_authorization_url_carries_provider_and_redirect(auth_settings: AuthSettings) -> None:
    client = SupabaseAuthClient(auth_settings)

    url = client.build_authorization_url("github", "http://localhost:54321")

    parsed = urlparse(url)
    assert parsed.netloc == "auth.example.com"
    assert parsed.path == "/auth/v1/authorize"
    query = parse_qs(parsed.query)
    assert query == {"provider": ["github"], "redirect_to": ["http://localhost:54321"]}


def test_unknown_provider_is_rejected(auth_settings: AuthSettings) -> None:
    with pytest.raises(AuthProviderError, match="Unsupported OAuth provider"):
        SupabaseAuthClient(auth_settings).build_authorization_url("gitlab", "http://localhost")


def test_missing_configuration_lists_env_vars(auth_settings: AuthSettings) -> None:
    settings = auth_settings.model_copy(update={"supabase_url": "", "supabase_anon_key": ""})

    with pytest.raises(AuthProviderError) as exc_info:
        SupabaseAuthClient(settings).build_authorization_url("github", "http://localhost")

    assert "SUPABASE_URL" in str(exc_info.value)
    assert "SUPABASE_ANON_KEY" in str(exc_info.value)


@pytest.mark.asyncio
async def test_refresh_session_posts_refresh_token(auth_settings: AuthSettings) -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = request.url
        captured["body"] = json.loads(request.content)
        captured["apikey"] = request.headers["apikey"]
        return httpx.Response(
            200, json={"access_token": "fresh", "refresh_token": "rotated", "expires_in": 3600}
        )

    client = SupabaseAuthClient(auth_settings, transport=httpx.MockTransport(handler))

    session = await client.refresh_session("old-refresh")

    assert captured["url"].path == "/auth/v1/token"
    assert captured["url"].params["grant_type"] == "refresh_token"
    assert captured["body"] == {"refresh_token": "old-refresh"}
    assert captured["apikey"] == "anon-key"
    assert session.access_token == "fresh"
    assert session.refresh_token == "rotated"
    assert session.expires_in == 3600


@pytest.mark.asyncio
async def test_refresh_session_keeps_refresh_token_when_not_rotated(
    auth_settings: AuthSettings,
) -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"access_token": "fresh"}))
    client = SupabaseAuthClient(auth_settings, transport=transport)

    session = await client.refresh_session("old-refresh")

    assert session.refresh_token == "old-refresh"


@pytest.mark.asyncio
async def test_refresh_session_error_raises(auth_settings: AuthSettings) -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(400, json={"error_description": "Invalid Refresh Token"})
    )
    client = SupabaseAuthClient(auth_settings, transport=transport)

    with pytest.raises(AuthProviderError, match="Invalid Refresh Token"):
        await client.refresh_session("old-refresh")


@pytest.mark.asyncio
async def test_establish_session_validates_token(auth_settings: AuthSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/auth/v1/user"
        assert request.headers["Authorization"] == "Bearer A"
        return httpx.Response(200, json={"id": "user-1", "email": "dev@example.com"})

    client = SupabaseAuthClient(auth_settings, transport=httpx.MockTransport(handler))

    session = await client.establish_session("A", "R")

    assert session.access_token == "A"
    assert session.refresh_token == "R"
    assert session.user == {"id": "user-1", "email": "dev@example.com"}


@pytest.mark.asyncio
async def test_list_memberships_orders_newest_first(auth_settings: AuthSettings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/rest/v1/members"
        assert request.url.params["order"] == "created_at.desc"
        return httpx.Response(200, json=[{"organizations": {"id": "org-1"}}])

    client = SupabaseAuthClient(auth_settings, transport=httpx.MockTransport(handler))

    memberships = await client.list_memberships("A")

    assert memberships == [{"organizations": {"id": "org-1"}}]
