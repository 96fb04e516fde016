"""
Local cache of project templates fetched from the template repository.

A cached template lives in ``<cache_dir>/<name>`` next to a
``.cache-meta.json`` sidecar recording when it was fetched.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import shutil
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path, PurePosixPath
from typing import Awaitable, Callable, List, Optional

from pydantic import ValidationError

from orbiter.clients.github import GitHubContentsClient, GitHubContentsError
from orbiter.core.config import TemplateSettings
from orbiter.schemas import TemplateCacheMeta, TemplateMetadata

logger = logging.getLogger(__name__)

CACHE_META_FILE = ".cache-meta.json"
TEMPLATE_META_FILE = "template.json"
GENERAL_TEMPLATES = "general"
MINI_APP_TEMPLATES = "mini-apps"

GitClone = Callable[[str, Path], Awaitable[None]]

# A single path segment; rules out "..", separators and absolute paths.
_TEMPLATE_NAME_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")


class TemplateFetchError(Exception):
    """Raised when a template can be neither cloned nor downloaded."""

    def __init__(
        self,
        template_name: str,
        available: Optional[List[str]] = None,
        message: Optional[str] = None,
    ) -> None:
        self.template_name = template_name
        self.available = available or []
        message = message or f"Template '{template_name}' not found or couldn't be fetched"
        if self.available:
            message += ". Available templates: " + ", ".join(self.available)
        super().__init__(message)


class InvalidTemplateNameError(TemplateFetchError):
    """Raised for names that are not a single directory inside the cache."""

    def __init__(self, template_name: str) -> None:
        super().__init__(template_name, message=f"Invalid template name '{template_name}'")


def validate_template_name(name: str) -> str:
    if not _TEMPLATE_NAME_RE.fullmatch(name or ""):
        raise InvalidTemplateNameError(name)
    return name


async def git_shallow_clone(url: str, destination: Path) -> None:
    """Clone only the latest commit of the default branch, without tags."""
    process = await asyncio.create_subprocess_exec(
        "git",
        "clone",
        "--depth=1",
        "--single-branch",
        "--no-tags",
        url,
        str(destination),
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    _, stderr = await process.communicate()
    if process.returncode != 0:
        raise OSError(
            f"git clone exited with {process.returncode}: "
            + stderr.decode("utf-8", errors="replace").strip()
        )


def is_cache_stale(meta_path: Path, *, ttl: timedelta, now: Optional[datetime] = None) -> bool:
    """True when the sidecar is missing, unreadable or older than ``ttl``."""
    try:
        meta = TemplateCacheMeta.model_validate(
            json.loads(meta_path.read_text(encoding="utf-8"))
        )
    except (OSError, ValueError, ValidationError):
        return True

    fetched_at = meta.fetched_at
    if fetched_at.tzinfo is None:
        fetched_at = fetched_at.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return now - fetched_at > ttl


class TemplateCache:
    """Fetch templates from one subtree of the repository, reusing fresh copies."""

    def __init__(
        self,
        settings: TemplateSettings,
        contents_client: GitHubContentsClient,
        *,
        subdirectory: str = GENERAL_TEMPLATES,
        clone: GitClone = git_shallow_clone,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._settings = settings
        self._contents = contents_client
        self._subdirectory = subdirectory
        self._clone = clone
        self._clock = clock

    @property
    def root(self) -> Path:
        return Path(self._settings.cache_dir)

    def template_path(self, name: str) -> Path:
        return self.root / validate_template_name(name)

    def _remote_path(self, name: Optional[str] = None) -> str:
        path = PurePosixPath("templates", self._subdirectory)
        return str(path / validate_template_name(name)) if name else str(path)

    def needs_fetch(self, name: str) -> bool:
        local = self.template_path(name)
        meta = local / CACHE_META_FILE
        return not local.is_dir() or is_cache_stale(
            meta, ttl=self._settings.cache_ttl, now=self._clock()
        )

    async def fetch(self, name: str, *, force: bool = False) -> Path:
        """Return a local directory holding template ``name``."""
        local = self.template_path(name)
        if not force and not self.needs_fetch(name):
            logger.info("Using cached template: %s", name)
            return local

        self.root.mkdir(parents=True, exist_ok=True)
        if local.exists():
            shutil.rmtree(local)

        try:
            await self._fetch_with_git(name, local)
        except (OSError, shutil.Error) as exc:
            logger.info("Git clone failed (%s), trying direct download...", exc)
            if local.exists():
                shutil.rmtree(local)
            try:
                local.mkdir(parents=True)
                await self._download_tree(self._remote_path(name), local)
            except (OSError, GitHubContentsError) as download_exc:
                logger.error("Failed to fetch template %s: %s", name, download_exc)
                shutil.rmtree(local, ignore_errors=True)
                raise TemplateFetchError(name, await self._available_or_empty()) from download_exc

        self._write_meta(name, local)
        logger.info("Downloaded template: %s", name)
        return local

    async def _fetch_with_git(self, name: str, local: Path) -> None:
        with tempfile.TemporaryDirectory(prefix="orbiter-template-") as tmp:
            clone_dir = Path(tmp) / "repo"
            await self._clone(f"{self._settings.repository_url}.git", clone_dir)
            source = clone_dir / self._remote_path(name)
            if not source.is_dir():
                raise FileNotFoundError(f"{self._remote_path(name)} is not in the repository")
            shutil.copytree(source, local)

    async def _download_tree(self, remote_path: str, target: Path) -> None:
        for entry in await self._contents.list_directory(remote_path):
            entry_name = entry.get("name")
            if not entry_name:
                continue
            if entry.get("type") == "file":
                content = await self._contents.download(entry["download_url"])
                (target / entry_name).write_bytes(content)
            elif entry.get("type") == "dir":
                child = target / entry_name
                child.mkdir(parents=True, exist_ok=True)
                await self._download_tree(f"{remote_path}/{entry_name}", child)

    def _write_meta(self, name: str, local: Path) -> None:
        meta = TemplateCacheMeta(
            fetched_at=self._clock(),
            template_name=name,
            source=self._settings.repository_url,
        )
        (local / CACHE_META_FILE).write_text(
            meta.model_dump_json(by_alias=True, indent=2), encoding="utf-8"
        )

    async def list_available(self) -> List[str]:
        """Template names, i.e. the directories of the subtree."""
        entries = await self._contents.list_directory(self._remote_path())
        return [entry["name"] for entry in entries if entry.get("type") == "dir"]

    async def _available_or_empty(self) -> List[str]:
        try:
            return await self.list_available()
        except GitHubContentsError as exc:
            logger.debug("Could not list templates: %s", exc)
            return []

    async def get_metadata(self, name: str) -> Optional[TemplateMetadata]:
        """The template's ``template.json``, or ``None`` when unavailable."""
        try:
            data = await self._contents.get_raw_json(
                f"{self._remote_path(name)}/{TEMPLATE_META_FILE}"
            )
            return TemplateMetadata.model_validate(data)
        except (TemplateFetchError, GitHubContentsError, ValueError, ValidationError):
            return None

    async def refresh_all(self) -> List[str]:
        """Re-fetch every available template regardless of age."""
        names = await self.list_available()
        for name in names:
            await self.fetch(name, force=True)
        return names


__all__ = [
    "CACHE_META_FILE",
    "GENERAL_TEMPLATES",
    "InvalidTemplateNameError",
    "MINI_APP_TEMPLATES",
    "TEMPLATE_META_FILE",
    "TemplateCache",
    "TemplateFetchError",
    "git_shallow_clone",
    "is_cache_stale",
    "validate_template_name",
]
