"""
Collect a local static site and push it to the content upload service.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from orbiter.clients.orbiter_api import OrbiterAPIClient
from orbiter.clients.pinata import PinataClient, PinataUploadError, UploadFile
from orbiter.models.credentials import CredentialRecord

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """Raised when a site cannot be uploaded."""


def resolve_site_path(path: str | Path, cwd: Optional[Path] = None) -> Path:
    """Absolute path of ``path``, relative to ``cwd`` (or the working directory)."""
    candidate = Path(path)
    if not candidate.is_absolute():
        candidate = (cwd or Path.cwd()) / candidate
    return candidate


def has_index_html(path: Path) -> bool:
    if path.is_file():
        return path.name.lower() == "index.html"
    if path.is_dir():
        return (path / "index.html").is_file()
    return False


def collect_files(path: Path) -> List[UploadFile]:
    """Files under ``path`` keyed by their posix path relative to it."""
    if path.is_file():
        return [(path.name, path.read_bytes())]
    if not path.is_dir():
        raise UploadError(f"Path {path} is neither a file nor a directory")

    files = [
        (item.relative_to(path).as_posix(), item.read_bytes())
        for item in sorted(path.rglob("*"))
        if item.is_file()
    ]
    if not files:
        raise UploadError(f"No files found to upload at path: {path}")
    return files


class SiteUploader:
    """Upload a build directory (or a single ``index.html``) and return its CID."""

    def __init__(self, api_client: OrbiterAPIClient, pinata_client: PinataClient) -> None:
        self._api = api_client
        self._pinata = pinata_client

    async def upload_site(
        self, path: str | Path, credential: CredentialRecord, *, cwd: Optional[Path] = None
    ) -> str:
        site_path = resolve_site_path(path, cwd)
        if not site_path.exists():
            raise UploadError(f"Path {site_path} does not exist")
        if not has_index_html(site_path):
            raise UploadError("The upload must contain an index.html file")

        files = collect_files(site_path)
        key = await self._api.request_upload_key(credential)
        logger.info("Uploading %d file(s) from %s", len(files), site_path)
        try:
            return await self._pinata.upload(files, key=key)
        except PinataUploadError as exc:
            raise UploadError(f"Upload failed: {exc}") from exc


__all__ = [
    "SiteUploader",
    "UploadError",
    "collect_files",
    "has_index_html",
    "resolve_site_path",
]
