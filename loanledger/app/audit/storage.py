from __future__ import annotations

import datetime as dt
import json
import logging
import re
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_-]")


class PublishError(Exception):
    """Raised when an audit document cannot be stored."""


def safe_subject(subject_id: str) -> str:
    """Filesystem-safe form of a subject id: every char outside [A-Za-z0-9_-] becomes ``_``."""
    return _UNSAFE_CHARS.sub("_", subject_id or "") or "_"


class PinataStore:
    """Pins JSON documents through Pinata's ``pinJSONToIPFS`` endpoint."""

    def __init__(
        self,
        jwt: Optional[str],
        *,
        api_url: str = "https://api.pinata.cloud/pinning/pinJSONToIPFS",
        gateway_url: str = "https://gateway.pinata.cloud/ipfs",
        timeout_seconds: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.jwt = jwt
        self.api_url = api_url
        self.gateway_url = gateway_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self.jwt)

    def gateway_link(self, content_hash: str) -> str:
        return f"{self.gateway_url}/{content_hash}"

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Authorization": f"Bearer {self.jwt}",
            "Content-Type": "application/json",
        }
        if self._client is not None:
            return await self._client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout_seconds)
        async with httpx.AsyncClient() as client:
            return await client.post(self.api_url, headers=headers, json=payload, timeout=self.timeout_seconds)

    async def upload_json(self, document: Dict[str, Any], filename: str) -> Tuple[str, str]:
        """Pin ``document``; returns ``(content hash, gateway URL)``."""
        if not self.configured:
            raise PublishError("PINATA_JWT not configured")
        payload = {
            "pinataContent": document,
            "pinataMetadata": {
                "name": filename,
                "keyvalues": {
                    "type": "master-contract",
                    "timestamp": dt.datetime.now(dt.timezone.utc).isoformat().replace("+00:00", "Z"),
                },
            },
        }
        try:
            resp = await self._post(payload)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as exc:
            raise PublishError("pinning request timed out") from exc
        except httpx.HTTPError as exc:
            raise PublishError(f"pinning request failed: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise PublishError("pinning service returned invalid JSON") from exc

        content_hash = data.get("IpfsHash") if isinstance(data, dict) else None
        if not content_hash:
            raise PublishError("pinning response missing IpfsHash")
        return content_hash, self.gateway_link(content_hash)


class LocalBackupStore:
    """Writes every generated audit document to its own file; nothing is overwritten."""

    def __init__(self, directory: str) -> None:
        self.directory = Path(directory)

    def path_for(self, subject_id: str, generated: dt.datetime) -> Path:
        stamp = generated.astimezone(dt.timezone.utc).strftime("%Y%m%dT%H%M%S%fZ")
        base = f"{safe_subject(subject_id)}_master_{stamp}"
        candidate = self.directory / f"{base}.json"
        counter = 1
        while candidate.exists():
            candidate = self.directory / f"{base}_{counter}.json"
            counter += 1
        return candidate

    def write(self, subject_id: str, document: Dict[str, Any], *, generated: Optional[dt.datetime] = None) -> Path:
        generated = generated or dt.datetime.now(dt.timezone.utc)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            path = self.path_for(subject_id, generated)
            path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        except OSError as exc:
            raise PublishError(f"local backup failed: {exc.strerror or exc}") from exc
        return path


__all__ = ["LocalBackupStore", "PinataStore", "PublishError", "safe_subject"]
