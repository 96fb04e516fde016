from __future__ import annotations

try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from orbiter.clients.github import GitHubContentsClient
from orbiter.core.config import TemplateSettings
from orbiter.services.templates import (
    CACHE_META_FILE,
    MINI_APP_TEMPLATES,
    InvalidTemplateNameError,
    TemplateCache,
    TemplateFetchError,
    is_cache_stale,
    validate_template_name,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


class FakeClone:
    def __init__(self, *, files: Optional[dict[str, str]] = None, fail: bool = False) -> None:
        self.files = files or {}
        self.fail = fail
        self.urls: list[str] = []

    async def __call__(self, url: str, destination: Path) -> None:
        self.urls.append(url)
        if self.fail:
            raise OSError("git: command not found")
        for relative, content in self.files.items():
            target = destination / relative
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")


def _contents(
    settings: TemplateSettings, handler: Optional[Callable[[httpx.Request], httpx.Response]] = None
) -> tuple[GitHubContentsClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if handler is None:
            return httpx.Response(500)
        return handler(request)

    return GitHubContentsClient(settings, transport=httpx.MockTransport(_handler)), seen


def _cache(settings: TemplateSettings, contents, clone, **kwargs) -> TemplateCache:
    return TemplateCache(settings, contents, clone=clone, clock=lambda: NOW, **kwargs)


def _seed(settings: TemplateSettings, name: str, fetched_at: datetime) -> Path:
    local = Path(settings.cache_dir) / name
    local.mkdir(parents=True)
    (local / "index.html").write_text("cached", encoding="utf-8")
    (local / CACHE_META_FILE).write_text(
        json.dumps(
            {
                "fetchedAt": fetched_at.isoformat(),
                "templateName": name,
                "source": "https://github.com/orbiterhost/orbiter-templates",
            }
        ),
        encoding="utf-8",
    )
    return local


def test_unparseable_metadata_is_stale(tmp_path: Path) -> None:
    meta = tmp_path / CACHE_META_FILE
    meta.write_text("not json", encoding="utf-8")

    assert is_cache_stale(meta, ttl=timedelta(hours=24), now=NOW)
    assert is_cache_stale(tmp_path / "missing.json", ttl=timedelta(hours=24), now=NOW)


@pytest.mark.asyncio
async def test_fresh_cache_is_reused_without_network(template_settings: TemplateSettings) -> None:
    local = _seed(template_settings, "react", NOW - timedelta(hours=1))
    contents, seen = _contents(template_settings)
    clone = FakeClone(fail=True)

    path = await _cache(template_settings, contents, clone).fetch("react")

    assert path == local
    assert (path / "index.html").read_text(encoding="utf-8") == "cached"
    assert clone.urls == []
    assert seen == []


@pytest.mark.asyncio
async def test_stale_cache_is_refetched(template_settings: TemplateSettings) -> None:
    _seed(template_settings, "react", NOW - timedelta(hours=25))
    contents, _ = _contents(template_settings)
    clone = FakeClone(files={"templates/general/react/index.html": "fresh"})

    path = await _cache(template_settings, contents, clone).fetch("react")

    assert clone.urls == ["https://github.com/orbiterhost/orbiter-templates.git"]
    assert (path / "index.html").read_text(encoding="utf-8") == "fresh"
    meta = json.loads((path / CACHE_META_FILE).read_text(encoding="utf-8"))
    assert meta["templateName"] == "react"
    assert datetime.fromisoformat(meta["fetchedAt"].replace("Z", "+00:00")) == NOW
    assert meta["source"] == "https://github.com/orbiterhost/orbiter-templates"


@pytest.mark.asyncio
async def test_mini_app_subtree_is_used(template_settings: TemplateSettings) -> None:
    contents, _ = _contents(template_settings)
    clone = FakeClone(files={"templates/mini-apps/farcaster/index.html": "mini"})

    path = await _cache(
        template_settings, contents, clone, subdirectory=MINI_APP_TEMPLATES
    ).fetch("farcaster")

    assert (path / "index.html").read_text(encoding="utf-8") == "mini"


@pytest.mark.asyncio
async def test_clone_failure_falls_back_to_contents_api(
    template_settings: TemplateSettings,
) -> None:
    api = "https://api.github.example.com/repos/orbiterhost/orbiter-templates/contents"
    raw = "https://raw.example.com/files"

    def handler(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if url == f"{api}/templates/general/react":
            return httpx.Response(
                200,
                json=[
                    {"name": "index.html", "type": "file", "download_url": f"{raw}/index.html"},
                    {"name": "src", "type": "dir", "download_url": None},
                ],
            )
        if url == f"{api}/templates/general/react/src":
            return httpx.Response(
                200,
                json=[{"name": "main.js", "type": "file", "download_url": f"{raw}/main.js"}],
            )
        if url == f"{raw}/index.html":
            return httpx.Response(200, content=b"<html></html>")
        if url == f"{raw}/main.js":
            return httpx.Response(200, content=b"console.log(1)")
        return httpx.Response(404, json={"message": "Not Found"})

    contents, _ = _contents(template_settings, handler)

    path = await _cache(template_settings, contents, FakeClone(fail=True)).fetch("react")

    assert (path / "index.html").read_bytes() == b"<html></html>"
    assert (path / "src" / "main.js").read_bytes() == b"console.log(1)"
    assert (path / CACHE_META_FILE).is_file()


@pytest.mark.asyncio
async def test_fetch_failure_lists_available_templates(
    template_settings: TemplateSettings,
) -> None:
    api = "https://api.github.example.com/repos/orbiterhost/orbiter-templates/contents"

    def handler(request: httpx.Request) -> httpx.Response:
        if str(request.url) == f"{api}/templates/general":
            return httpx.Response(
                200,
                json=[
                    {"name": "react", "type": "dir"},
                    {"name": "vue", "type": "dir"},
                    {"name": "README.md", "type": "file"},
                ],
            )
        return httpx.Response(404, json={"message": "Not Found"})

    contents, _ = _contents(template_settings, handler)

    with pytest.raises(TemplateFetchError) as exc_info:
        await _cache(template_settings, contents, FakeClone(fail=True)).fetch("angular")

    assert exc_info.value.available == ["react", "vue"]
    assert "react, vue" in str(exc_info.value)
    assert not (Path(template_settings.cache_dir) / "angular").exists()


@pytest.mark.asyncio
async def test_get_metadata_returns_none_when_missing(
    template_settings: TemplateSettings,
) -> None:
    contents, _ = _contents(template_settings, lambda request: httpx.Response(404))

    cache = _cache(template_settings, contents, FakeClone())

    assert await cache.get_metadata("react") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("name", ["..", "../..", ".", "", "/etc", "react/../..", ".hidden"])
async def test_unsafe_template_names_touch_nothing(
    template_settings: TemplateSettings, name: str
) -> None:
    cache_root = Path(template_settings.cache_dir)
    cache_root.mkdir(parents=True)
    sibling = cache_root.parent / "credentials-backup.txt"
    sibling.write_text("keep me", encoding="utf-8")
    contents, seen = _contents(template_settings, lambda request: httpx.Response(404))
    clone = FakeClone(fail=True)

    with pytest.raises(InvalidTemplateNameError):
        await _cache(template_settings, contents, clone).fetch(name)

    assert sibling.read_text(encoding="utf-8") == "keep me"
    assert cache_root.is_dir()
    assert clone.urls == []
    assert seen == []


def test_invalid_template_name_is_a_fetch_error() -> None:
    with pytest.raises(TemplateFetchError, match="Invalid template name"):
        validate_template_name("../..")

    assert validate_template_name("next-js_v2.1") == "next-js_v2.1"
