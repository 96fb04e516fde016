"""Pytest configuration shared across the suite."""

from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for rootdir imports
    import _bootstrap  # type: ignore # noqa: F401

import socket
from pathlib import Path

import pytest

from orbiter.core.config import ApiSettings, AuthSettings, TemplateSettings
from orbiter.services.credential_store import CredentialStore


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO-powered tests to run against asyncio backend only."""
    return "asyncio"


@pytest.fixture
def credentials_path(tmp_path: Path) -> Path:
    return tmp_path / "home" / ".orbiter.json"


@pytest.fixture
def store(credentials_path: Path) -> CredentialStore:
    return CredentialStore(credentials_path)


@pytest.fixture
def auth_settings(credentials_path: Path) -> AuthSettings:
    return AuthSettings(
        supabase_url="https://auth.example.com",
        supabase_anon_key="anon-key",
        credentials_path=credentials_path,
        api_key=None,
    )


@pytest.fixture
def api_settings() -> ApiSettings:
    return ApiSettings(
        base_url="https://api.example.com",
        upload_url="https://uploads.example.com/pinning/pinFileToIPFS",
        site_domain="orbiter.website",
    )


@pytest.fixture
def template_settings(tmp_path: Path) -> TemplateSettings:
    return TemplateSettings(
        repository="orbiterhost/orbiter-templates",
        cache_dir=tmp_path / "cache" / "templates",
        github_api_url="https://api.github.example.com",
        raw_base_url="https://raw.example.com/orbiter-templates/main",
    )


@pytest.fixture
def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]
