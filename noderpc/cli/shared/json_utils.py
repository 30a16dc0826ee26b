"""JSON argument and config-file helpers for CLI commands."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from noderpc.config.loader import get_config_path


def load_config_json(path: Path | None = None) -> dict[str, Any]:
    """Read raw config JSON from disk."""
    path = path or get_config_path()
    if not path.exists():
        return {}
    return json.loads(path.read_text(encoding="utf-8"))


def save_config_json(data: dict[str, Any], path: Path | None = None) -> Path:
    """Write raw config JSON to the config path."""
    path = path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def parse_value(raw: str) -> Any:
    """Parse CLI input value as JSON if possible; fallback to string."""
    text = raw.strip()
    if text == "":
        return ""
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


def parse_params(raw: str | None) -> list[Any] | dict[str, Any]:
    """Parse call params given on the command line; a bare scalar becomes a one-element list."""
    if raw is None or not raw.strip():
        return []
    value = parse_value(raw)
    if isinstance(value, (list, dict)):
        return value
    return [value]


def parse_batch(raw: str) -> list[tuple[str, Any]]:
    """
    Parse a batch argument.

    Accepts a JSON array whose items are {"method": ..., "params": ...}
    objects or [method, params] pairs.
    """
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"batch must be JSON: {e}") from e
    if not isinstance(items, list):
        raise ValueError("batch must be a JSON array")

    batch: list[tuple[str, Any]] = []
    for index, item in enumerate(items):
        if isinstance(item, dict) and isinstance(item.get("method"), str):
            batch.append((item["method"], item.get("params")))
        elif isinstance(item, list) and item and isinstance(item[0], str) and len(item) <= 2:
            batch.append((item[0], item[1] if len(item) == 2 else None))
        else:
            raise ValueError(f"batch item {index} must be {{method, params}} or [method, params]")
    return batch


def parse_headers(values: list[str] | None) -> dict[str, str]:
    """Parse repeated NAME=VALUE (or NAME: VALUE) options."""
    headers: dict[str, str] = {}
    for value in values or []:
        sep = "=" if "=" in value else ":"
        name, found, content = value.partition(sep)
        if not found or not name.strip():
            raise ValueError(f"header must be NAME=VALUE: {value}")
        headers[name.strip()] = content.strip()
    return headers


def deep_get(data: dict[str, Any], dotted_key: str) -> Any:
    """Get value by dotted path."""
    cur: Any = data
    for part in dotted_key.split("."):
        if not isinstance(cur, dict) or part not in cur:
            raise KeyError(dotted_key)
        cur = cur[part]
    return cur


def deep_set(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    """Set value by dotted path."""
    parts = dotted_key.split(".")
    cur: dict[str, Any] = data
    for part in parts[:-1]:
        node = cur.get(part)
        if not isinstance(node, dict):
            node = {}
            cur[part] = node
        cur = node
    cur[parts[-1]] = value
