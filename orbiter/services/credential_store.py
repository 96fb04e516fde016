"""
Persistence for the single local credential record.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from orbiter.models.credentials import CredentialRecord, KeyType, utcnow

logger = logging.getLogger(__name__)


class CredentialStore:
    """Read and overwrite the credential file at a fixed per-user path."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def store(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        key_type: KeyType = KeyType.OAUTH,
        *,
        created_at: Optional[datetime] = None,
    ) -> CredentialRecord:
        """Replace whatever record is on disk and return the new one."""
        record = CredentialRecord(
            access_token=access_token,
            refresh_token=refresh_token,
            created_at=created_at or utcnow(),
            key_type=key_type,
        )
        self.save(record)
        return record

    def save(self, record: CredentialRecord) -> None:
        """Write through an owner-only temp file, then swap it into place."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self._path.with_name(self._path.name + ".tmp")
        temp_path.unlink(missing_ok=True)
        fd = os.open(temp_path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(record.model_dump_json(indent=2, exclude_none=True))
            os.replace(temp_path, self._path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise
        logger.debug("Stored %s credential at %s", record.key_type.value, self._path)

    def load(self) -> Optional[CredentialRecord]:
        """Return the stored record, or ``None`` when missing or unreadable."""
        if not self._path.exists():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return CredentialRecord.model_validate(data)
        except (OSError, ValueError, ValidationError) as exc:
            logger.warning("Ignoring unreadable credential file %s: %s", self._path, exc)
            return None


__all__ = ["CredentialStore"]
