"""Document stores used by the autosave controller.

Both stores persist the block array of a document together with a markdown
rendition for search. ``replace_content`` is awaited by regular saves while
``send_beacon`` is a synchronous best-effort write for navigation and teardown.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence, runtime_checkable

import httpx

from ..tools.errors import PersistenceError

__all__ = ["DocumentStore", "JsonFileDocumentStore", "HttpDocumentStore"]

LOGGER = logging.getLogger(__name__)
_SAFE_ID = re.compile(r"^[A-Za-z0-9._-]+$")


@runtime_checkable
class DocumentStore(Protocol):
    """Write contract shared by every persistence backend."""

    async def replace_content(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> datetime:
        """Replace the stored content and return the server-side update time."""
        ...

    def send_beacon(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> bool:
        """Synchronously hand the content off; never raises."""
        ...


def _build_payload(blocks: Sequence[Mapping[str, Any]], searchable_content: str | None) -> dict[str, Any]:
    return {
        "content": [dict(block) for block in blocks],
        "searchable_content": searchable_content or None,
    }


# ----------------------------------------------------------------------
# Local JSON files
# ----------------------------------------------------------------------


class JsonFileDocumentStore:
    """Stores each document as ``<root>/<document_id>.json``."""

    _VERSION = 1

    def __init__(self, root: Path | str) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, document_id: str) -> Path:
        if not document_id or not _SAFE_ID.match(document_id):
            raise PersistenceError(
                message=f"Document id {document_id!r} cannot be used as a file name",
                document_id=document_id,
            )
        return self._root / f"{document_id}.json"

    async def replace_content(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> datetime:
        return self._write(document_id, blocks, searchable_content)

    def send_beacon(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> bool:
        try:
            self._write(document_id, blocks, searchable_content)
        except PersistenceError as exc:
            LOGGER.warning("Beacon write for %s failed: %s", document_id, exc)
            return False
        return True

    def load(self, document_id: str) -> list[dict[str, Any]] | None:
        """Return the stored block array, or ``None`` when nothing is stored."""

        path = self.path_for(document_id)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            LOGGER.warning("Stored document %s is not valid JSON: %s", path, exc)
            return None
        content = payload.get("content") if isinstance(payload, dict) else None
        if not isinstance(content, list):
            return None
        return [item for item in content if isinstance(item, dict)]

    def _write(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> datetime:
        path = self.path_for(document_id)
        updated_at = datetime.now(timezone.utc)
        payload = _build_payload(blocks, searchable_content)
        payload["version"] = self._VERSION
        payload["updated_at"] = updated_at.isoformat()
        try:
            body = json.dumps(payload, indent=2, ensure_ascii=False)
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(body, encoding="utf-8")
            tmp_path.replace(path)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(
                message=f"Failed to write {path}: {exc}",
                document_id=document_id,
            ) from exc
        LOGGER.debug("Saved document %s to %s", document_id, path)
        return updated_at


# ----------------------------------------------------------------------
# Document API over HTTP
# ----------------------------------------------------------------------


class HttpDocumentStore:
    """Stores documents through ``PUT {base_url}/api/documents/{id}/content``."""

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        headers: Mapping[str, str] | None = None,
        transport: Any = None,
    ) -> None:
        # ``transport`` must serve both the async client and the beacon client.
        self._base_url = base_url.rstrip("/")
        self._timeout = httpx.Timeout(timeout)
        self._headers = dict(headers or {})
        self._transport = transport
        self._client = client
        self._owns_client = client is None

    def content_url(self, document_id: str) -> str:
        return f"{self._base_url}/api/documents/{document_id}/content"

    async def replace_content(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> datetime:
        client = self._get_client()
        try:
            response = await client.put(
                self.content_url(document_id),
                json=_build_payload(blocks, searchable_content),
            )
        except httpx.HTTPError as exc:
            raise PersistenceError(
                message=f"Save request failed: {exc}",
                document_id=document_id,
            ) from exc
        return self._parse_response(document_id, response)

    def send_beacon(
        self,
        document_id: str,
        blocks: Sequence[Mapping[str, Any]],
        searchable_content: str | None,
    ) -> bool:
        try:
            with httpx.Client(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            ) as client:
                response = client.put(
                    self.content_url(document_id),
                    json=_build_payload(blocks, searchable_content),
                )
            self._parse_response(document_id, response)
        except (httpx.HTTPError, PersistenceError) as exc:
            LOGGER.warning("Beacon save for %s failed: %s", document_id, exc)
            return False
        return True

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    @staticmethod
    def _parse_response(document_id: str, response: httpx.Response) -> datetime:
        payload: Any = None
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if response.is_error:
            message = f"Save failed ({response.status_code})"
            if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
                message = payload["error"].get("message") or message
            raise PersistenceError(
                message=message,
                document_id=document_id,
                status_code=response.status_code,
            )

        raw = None
        if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
            raw = payload["data"].get("updated_at")
        if isinstance(raw, str):
            try:
                return datetime.fromisoformat(raw.replace("Z", "+00:00"))
            except ValueError:
                LOGGER.debug("Unparseable updated_at %r for %s", raw, document_id)
        return datetime.now(timezone.utc)
