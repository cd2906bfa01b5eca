from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional


AppMode = Literal["remote", "local"]

DEFAULT_API_BASE = "http://localhost:8080/api"
DEFAULT_STORE_PATH = Path("~/.questlines/store.json")
DEFAULT_HTTP_TIMEOUT = 10.0

# browser_only is the mode name the web frontend used for local-only storage.
_MODE_ALIASES: dict[str, AppMode] = {
    "remote": "remote",
    "api": "remote",
    "local": "local",
    "browser_only": "local",
}


class ConfigError(ValueError):
    pass


@dataclass(frozen=True)
class Settings:
    mode: AppMode
    api_base: str
    store_path: Path
    export_dir: Path
    http_timeout: float


def parse_mode(value: str) -> AppMode:
    mode = _MODE_ALIASES.get(value.strip().lower())
    if mode is None:
        raise ConfigError(f"unknown mode: {value} (choose one of: remote, local)")
    return mode


def load_settings(
    *,
    mode: Optional[str] = None,
    api_base: Optional[str] = None,
    store_path: Optional[str] = None,
    export_dir: Optional[str] = None,
) -> Settings:
    """Resolve settings.

    Resolution order per field:
      1) explicit argument (CLI option)
      2) QUESTLINES_* environment variable
      3) default
    """

    raw_mode = mode or os.getenv("QUESTLINES_APP_MODE", "") or "remote"
    raw_base = api_base or os.getenv("QUESTLINES_API_BASE", "") or DEFAULT_API_BASE
    raw_store = store_path or os.getenv("QUESTLINES_STORE_PATH", "") or str(DEFAULT_STORE_PATH)
    raw_export = export_dir or os.getenv("QUESTLINES_EXPORT_DIR", "") or "."
    raw_timeout = (os.getenv("QUESTLINES_HTTP_TIMEOUT", "") or "").strip()

    timeout = DEFAULT_HTTP_TIMEOUT
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError as e:
            raise ConfigError(f"QUESTLINES_HTTP_TIMEOUT must be a number, got {raw_timeout!r}") from e
        if timeout <= 0:
            raise ConfigError("QUESTLINES_HTTP_TIMEOUT must be > 0")

    if not raw_base.startswith(("http://", "https://")):
        raise ConfigError(f"api base must be an http(s) URL, got {raw_base!r}")

    return Settings(
        mode=parse_mode(raw_mode),
        api_base=raw_base.rstrip("/"),
        store_path=Path(raw_store).expanduser(),
        export_dir=Path(raw_export).expanduser(),
        http_timeout=timeout,
    )
