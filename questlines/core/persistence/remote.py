from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Optional

import httpx

from questlines.core.errors import NotFound, TransportFailure
from questlines.core.io.normalize import normalize_questline
from questlines.core.logging import get_logger
from questlines.core.model import Questline, QuestlineInfo

log = get_logger(__name__)

_DEFAULT_TIMEOUT = 10.0
_FILENAME_RE = re.compile(r'filename="?([^";]+)"?')


class RemoteQuestlineBackend:
    """Persistence through the questlines HTTP API (``{api_base}/questlines``)."""

    def __init__(
        self,
        api_base: str,
        *,
        export_dir: Path = Path("."),
        timeout: float = _DEFAULT_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._export_dir = Path(export_dir)
        self._client = client or httpx.AsyncClient(
            base_url=self._api_base,
            timeout=timeout,
            headers={"Content-Type": "application/json"},
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def list_summaries(self) -> list[QuestlineInfo]:
        payload = self._json(await self._request("GET", "/questlines"))
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise TransportFailure(
                code="E_BAD_RESPONSE", message="expected a JSON array of questlines", path="/questlines"
            )
        infos = [QuestlineInfo.from_dict(item) for item in payload if isinstance(item, dict) and item.get("id")]
        return infos

    async def get(self, questline_id: str) -> Questline:
        url = f"/questlines/{questline_id}"
        return self._questline(await self._request("GET", url), url)

    async def create(self, questline: Questline) -> Questline:
        body = questline.to_dict()
        body.pop("created", None)
        body.pop("updated", None)
        resp = await self._request("POST", "/questlines", json=body)
        created = self._questline(resp, "/questlines")
        log.info("questline_created", questline_id=created.id, store="remote")
        return created

    async def update(self, questline_id: str, questline: Questline) -> Questline:
        url = f"/questlines/{questline_id}"
        body = questline.to_dict()
        body["id"] = questline_id
        updated = self._questline(await self._request("PUT", url, json=body), url)
        log.info("questline_updated", questline_id=questline_id, store="remote")
        return updated

    async def delete(self, questline_id: str) -> None:
        await self._request("DELETE", f"/questlines/{questline_id}")
        log.info("questline_deleted", questline_id=questline_id, store="remote")

    async def export(self, questline_id: str, fmt: str) -> Path:
        # Which formats exist is the server's business; it answers 400 otherwise.
        resp = await self._request("GET", f"/questlines/{questline_id}/export", params={"format": fmt})
        filename = _filename_from(resp.headers.get("content-disposition")) or f"{questline_id}.{fmt}"
        out = self._export_dir / Path(filename).name
        try:
            out.parent.mkdir(parents=True, exist_ok=True)
            out.write_bytes(resp.content)
        except OSError as e:
            raise TransportFailure(code="E_EXPORT_WRITE", message=str(e), file=str(out)) from e
        log.info("questline_exported", questline_id=questline_id, file=str(out))
        return out

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            log.warning("questlines_api_unreachable", method=method, url=url, error=str(e))
            raise TransportFailure(
                code="E_TRANSPORT",
                message=f"Cannot reach questlines API at {self._api_base}: {e}",
                path=url,
            ) from e

        if resp.status_code == 404:
            raise NotFound(code="E_NOT_FOUND", message=_error_text(resp, "Questline not found"), path=url)
        if resp.is_error:
            log.warning("questlines_api_error", method=method, url=url, status=resp.status_code)
            raise TransportFailure(
                code=f"E_HTTP_{resp.status_code}",
                message=_error_text(resp, resp.reason_phrase or "request failed"),
                path=url,
            )
        return resp

    @staticmethod
    def _json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            snippet = resp.text[:200]
            raise TransportFailure(
                code="E_BAD_RESPONSE",
                message=f"response is not JSON. First 200 chars: {snippet}",
                path=str(resp.request.url),
            ) from e

    def _questline(self, resp: httpx.Response, url: str) -> Questline:
        payload = self._json(resp)
        if not isinstance(payload, dict):
            raise TransportFailure(code="E_BAD_RESPONSE", message="expected a questline object", path=url)
        return Questline.from_dict(normalize_questline(payload))


def _error_text(resp: httpx.Response, default: str) -> str:
    try:
        payload = resp.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), str):
        return payload["error"]
    return default


def _filename_from(header: Optional[str]) -> Optional[str]:
    if not header:
        return None
    m = _FILENAME_RE.search(header)
    return m.group(1).strip() if m else None
