"""File system and encoding helpers shared across the pipeline."""

from __future__ import annotations

import base64
import hashlib
import json
import mimetypes
from pathlib import Path
from typing import Any


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


def sha256_hex(data: bytes) -> str:
    """Return the hexadecimal SHA-256 digest for the given bytes."""
    return hashlib.sha256(data).hexdigest()


def to_data_url(data: bytes, mime: str = "image/png") -> str:
    """Encode bytes as an inline ``data:`` URL."""
    encoded = base64.b64encode(data).decode("utf-8")
    return f"data:{mime};base64,{encoded}"


def guess_mime(path: str | Path, default: str = "image/png") -> str:
    mime, _ = mimetypes.guess_type(str(path))
    return mime or default
