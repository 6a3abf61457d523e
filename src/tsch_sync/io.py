from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Mapping

import yaml

from .config import SyncParameters
from .errors import InvalidConfiguration


def _parse(p: Path) -> Any:
    suffix = p.suffix.lower()
    text = p.read_text(encoding="utf-8")
    if suffix in {".yaml", ".yml"}:
        try:
            return yaml.safe_load(text) or {}
        except yaml.YAMLError as exc:
            raise InvalidConfiguration(f"Failed to parse YAML: {p}\n{exc}") from exc
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidConfiguration(f"Failed to parse JSON: {p}\n{exc}") from exc
    raise InvalidConfiguration(f"Unsupported parameters format: {p.suffix} (expected .json/.yaml/.yml)")


def load_parameters(path: str | Path) -> SyncParameters:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(str(path))

    raw = _parse(p)
    if not isinstance(raw, Mapping):
        raise InvalidConfiguration(f"Invalid sync parameters: {p}\nexpected a mapping, got {type(raw).__name__}")

    try:
        return SyncParameters.from_mapping(raw)
    except InvalidConfiguration as exc:
        raise InvalidConfiguration(f"Invalid sync parameters: {p}\n{exc}") from exc
