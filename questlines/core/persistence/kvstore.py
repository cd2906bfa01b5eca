from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Optional

from questlines.core.errors import TransportFailure


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStore:
    """Key-value store kept in a single JSON object file.

    The whole file is rewritten on every write (temp file + rename).
    """

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        except (OSError, json.JSONDecodeError) as e:
            raise TransportFailure(code="E_STORAGE_READ", message=str(e), file=str(self._path)) from e
        if not isinstance(raw, dict):
            raise TransportFailure(
                code="E_STORAGE_READ",
                message="store file must contain a JSON object",
                file=str(self._path),
            )
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _write(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self._path.parent, prefix=".store-", suffix=".json")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, sort_keys=True)
            os.replace(tmp, self._path)
        except OSError as e:
            raise TransportFailure(code="E_STORAGE_WRITE", message=str(e), file=str(self._path)) from e
