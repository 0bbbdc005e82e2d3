"""Record store backends holding the full JSON document.

`RemoteRecordStore` talks to a hosted JSON document service (JSONBin-style
GET/PUT of one record). `FileRecordStore` keeps the same contract against a
local file for single-host deployments without a remote store.
"""

import asyncio
import json
from pathlib import Path
from typing import Any

import httpx


class RecordStoreError(Exception):
    """Raised when the document cannot be read from or written to the store."""


class RemoteRecordStore:
    """GET/PUT the whole document against one remote record URL."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        api_key: str = "",
        api_key_header: str = "X-Master-Key",
    ) -> None:
        self.client = client
        self.url = url.rstrip("/")
        self.headers = {api_key_header: api_key} if api_key else {}

    async def get(self) -> dict[str, Any]:
        """Fetch the current document, unwrapping `{"record": ...}` envelopes."""

        try:
            resp = await self.client.get(f"{self.url}/latest", headers=self.headers)
            resp.raise_for_status()
            body = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise RecordStoreError(f"record fetch failed: {exc}") from exc
        if isinstance(body, dict) and isinstance(body.get("record"), dict):
            body = body["record"]
        if not isinstance(body, dict):
            raise RecordStoreError("record fetch returned a non-object document")
        return body

    async def put(self, document: dict[str, Any]) -> None:
        """Replace the remote document (last write wins)."""

        try:
            resp = await self.client.put(self.url, headers=self.headers, json=document)
            resp.raise_for_status()
        except httpx.HTTPError as exc:
            raise RecordStoreError(f"record write failed: {exc}") from exc


class FileRecordStore:
    """Local JSON file with the same get/put contract as the remote store."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        text = self.path.read_text(encoding="utf-8")
        return json.loads(text) if text.strip() else {}

    def _write(self, document: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(document, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    async def get(self) -> dict[str, Any]:
        try:
            body = await asyncio.to_thread(self._read)
        except (OSError, ValueError) as exc:
            raise RecordStoreError(f"record file read failed: {exc}") from exc
        if not isinstance(body, dict):
            raise RecordStoreError("record file does not hold a JSON object")
        return body

    async def put(self, document: dict[str, Any]) -> None:
        try:
            await asyncio.to_thread(self._write, document)
        except OSError as exc:
            raise RecordStoreError(f"record file write failed: {exc}") from exc
