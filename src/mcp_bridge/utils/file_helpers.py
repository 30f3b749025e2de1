"""Settings file helpers.

Provides:
- get_app_dir: per-user directory holding settings.json
- load_validated_json: read a JSON object file into a Pydantic model
- format_validation_error: one line per invalid field, camelCase locations
"""

from __future__ import annotations

__all__ = [
    "format_validation_error",
    "get_app_dir",
    "load_validated_json",
]

import json
from pathlib import Path
from typing import Any, TypeVar

import click
from pydantic import BaseModel, ValidationError

from mcp_bridge.constants import APP_NAME

ModelT = TypeVar("ModelT", bound=BaseModel)


def get_app_dir() -> Path:
    """Per-user config directory, e.g. ~/.config/mcp-bridge on Linux."""
    return Path(click.get_app_dir(APP_NAME))


def format_validation_error(error: ValidationError, source: str) -> str:
    """Render a ValidationError as a readable multi-line message.

    Locations use the aliases the file was written with
    (``autoApproval.limits.maxRequests``), so users can find the key.
    """
    lines = [f"Invalid {source}:"]
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"]) or "(root)"
        lines.append(f"  - {location}: {detail['msg']}")
    return "\n".join(lines)


def _read_json_object(file_path: Path, source: str, encoding: str) -> dict[str, Any]:
    try:
        text = file_path.read_text(encoding=encoding)
    except OSError as e:
        raise ValueError(f"Could not read {source}: {e.strerror or e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in {source} (line {e.lineno}, column {e.colno}): {e.msg}") from e

    if not isinstance(data, dict):
        raise ValueError(f"Invalid {source}: expected a JSON object, got {type(data).__name__}")
    return data


def load_validated_json(
    file_path: Path,
    model_class: type[ModelT],
    file_type: str = "file",
    encoding: str = "utf-8",
) -> ModelT:
    """Load a JSON object file and validate it against a Pydantic model.

    Args:
        file_path: Path to the JSON file.
        model_class: Model to validate against.
        file_type: Used in error messages, e.g. "settings".
        encoding: File encoding.

    Returns:
        Validated model instance.

    Raises:
        ValueError: If the file is unreadable, not a JSON object, or invalid.
    """
    source = f"{file_type} file {file_path}"
    data = _read_json_object(file_path, source, encoding)
    try:
        return model_class.model_validate(data)
    except ValidationError as e:
        raise ValueError(format_validation_error(e, source)) from e
