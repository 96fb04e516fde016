"""Content upload service client."""

from __future__ import annotations

import json
from typing import List, Optional, Sequence, Tuple

import httpx

from orbiter.core.config import ApiSettings
from orbiter.utils.http import error_message

UploadFile = Tuple[str, bytes]

_FOLDER_NAME = "folder_from_sdk"


class PinataUploadError(Exception):
    """Raised when the upload service rejects the files."""


class PinataClient:
    """Upload a single file or a whole folder and return its CID."""

    def __init__(
        self,
        settings: ApiSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _multipart(self, files: Sequence[UploadFile]) -> Tuple[List[tuple], dict]:
        if len(files) == 1:
            name, content = files[0]
            parts = [("file", (name.rsplit("/", 1)[-1], content))]
            metadata_name = name
        else:
            parts = [("file", (f"{_FOLDER_NAME}/{name}", content)) for name, content in files]
            metadata_name = _FOLDER_NAME

        options: dict = {"cidVersion": 1}
        if self._settings.upload_group_id:
            options["groupId"] = self._settings.upload_group_id
        data = {
            "pinataMetadata": json.dumps({"name": metadata_name}),
            "pinataOptions": json.dumps(options),
        }
        return parts, data

    async def upload(self, files: Sequence[UploadFile], *, key: str) -> str:
        """Upload ``files`` (relative posix path, bytes) authenticated by ``key``."""
        if not files:
            raise PinataUploadError("Nothing to upload.")

        parts, data = self._multipart(files)
        async with httpx.AsyncClient(
            timeout=self._settings.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.post(
                self._settings.upload_url,
                files=parts,
                data=data,
                headers={"Authorization": f"Bearer {key}"},
            )
        if response.is_error:
            raise PinataUploadError(error_message(response))

        cid = response.json().get("IpfsHash")
        if not cid:
            raise PinataUploadError("Upload response did not include a CID.")
        return cid


__all__ = ["PinataClient", "PinataUploadError", "UploadFile"]
