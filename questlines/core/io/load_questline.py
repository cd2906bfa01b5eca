from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import yaml

from questlines.core.errors import QuestlineLoadError

# suffix -> (parser, parse error code)
_PARSERS: dict[str, tuple[Callable[[str], Any], str]] = {
    ".json": (json.loads, "E_JSON_PARSE"),
    ".yaml": (yaml.safe_load, "E_YAML_PARSE"),
    ".yml": (yaml.safe_load, "E_YAML_PARSE"),
}

# Top-level fields a questline document may carry, with the type each must have.
_FIELD_TYPES: dict[str, tuple[type, str]] = {
    "id": (str, "a string"),
    "name": (str, "a string"),
    "quests": (list, "a list"),
    "dependencies": (list, "a list"),
}


def load_questline_file(path: str) -> dict[str, Any]:
    """Read a questline document (a JSON export, or hand-written YAML).

    Only the file format and the top-level shape are checked here: the
    document must be a mapping and ``id``/``name``/``quests``/``dependencies``
    must have the right type when present. Anything inside the lists is left
    for ``normalize_questline`` to repair and ``lint_questline`` to report.
    """

    p = Path(path)
    if not p.is_file():
        raise QuestlineLoadError(code="E_FILE_NOT_FOUND", message="file does not exist", file=str(p))

    parser = _PARSERS.get(p.suffix.lower())
    if parser is None:
        supported = ", ".join(sorted(_PARSERS))
        raise QuestlineLoadError(
            code="E_UNSUPPORTED_FORMAT",
            message=f"questline files must be one of: {supported}",
            file=str(p),
        )
    parse, parse_code = parser

    try:
        text = p.read_text(encoding="utf-8")
    except OSError as e:  # pragma: no cover
        raise QuestlineLoadError(code="E_FILE_READ", message=str(e), file=str(p)) from e

    try:
        data = parse(text)
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise QuestlineLoadError(code=parse_code, message=str(e), file=str(p)) from e

    if not isinstance(data, dict):
        raise QuestlineLoadError(
            code="E_INVALID_TOP_LEVEL",
            message="a questline document must be a mapping/object",
            file=str(p),
        )

    for key, (expected, label) in _FIELD_TYPES.items():
        value = data.get(key)
        if value is not None and not isinstance(value, expected):
            raise QuestlineLoadError(
                code="E_INVALID_FIELD",
                message=f"'{key}' must be {label}, got {type(value).__name__}",
                file=str(p),
                path=key,
            )

    return data
