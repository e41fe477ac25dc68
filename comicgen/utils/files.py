"""File system helpers shared across the pipeline."""

from __future__ import annotations

import base64
import json
import os
import re
from pathlib import Path
from typing import Any

_UNSAFE_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*]')


def ensure_dir(path: str | Path) -> Path:
    """Create the directory if it does not exist."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def read_binary(path: str | Path) -> bytes:
    """Read binary content from a file."""
    with open(path, "rb") as handle:
        return handle.read()


def write_text(path: str | Path, content: str) -> Path:
    """Write UTF-8 text to disk."""
    target = Path(path)
    ensure_dir(target.parent)
    target.write_text(content, encoding="utf-8")
    return target


def write_json(path: str | Path, data: Any) -> Path:
    """Serialize a Python object as JSON to disk."""
    payload = json.dumps(data, indent=2, ensure_ascii=False, default=str)
    return write_text(path, payload)


def b64encode(data: bytes) -> str:
    """Encode bytes to a base64 string without newlines."""
    return base64.b64encode(data).decode("utf-8")


def b64decode_to_bytes(data: str) -> bytes:
    """Decode a base64 string into bytes."""
    return base64.b64decode(data.encode("utf-8"))


def atomic_write(path: str | Path, content: bytes) -> Path:
    """Write binary content to disk atomically.

    Readers never observe a half-written file at ``path``: the payload goes to
    a sibling ``.tmp`` file first and is moved into place with ``os.replace``.
    """
    target = Path(path)
    ensure_dir(target.parent)
    temp_path = target.with_suffix(target.suffix + ".tmp")
    try:
        with open(temp_path, "wb") as handle:
            handle.write(content)
        os.replace(temp_path, target)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return target


def sanitize_filename(name: str, max_length: int = 100) -> str:
    """Strip characters that are unsafe in file names and collapse whitespace."""
    cleaned = _UNSAFE_FILENAME_CHARS.sub("", name)
    cleaned = re.sub(r"\s+", "-", cleaned.strip())
    return cleaned[:max_length] or "untitled"
