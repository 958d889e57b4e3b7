"""Durable JSON persistence for per-entity output and manifests."""

import hashlib
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from .errors import FileWriteError
from .lax_logging import get_logger

logger = get_logger(__name__)


def ensure_dir(path: Path) -> None:
    """Ensure directory exists, creating parent directories as needed.

    Raises:
        FileWriteError: directory could not be created
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("Failed to create directory", path=str(path), error=str(e))
        raise FileWriteError(f"Failed to create directory {path}: {e}", str(path), e) from e


def write_json(path: Path, payload: Any) -> Dict[str, Any]:
    """Write pretty JSON atomically: temp file, fsync, rename over ``path``.

    A crash mid-write leaves either the previous file or the new one, never a
    truncated document.

    Returns:
        Dictionary with metadata: {"bytes": int, "sha1": str}

    Raises:
        FileWriteError: serialization or any filesystem step failed
    """
    ensure_dir(path.parent)

    try:
        json_bytes = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise FileWriteError(f"Failed to write {path}: {e}", str(path), e) from e

    tmp_name: Optional[str] = None
    try:
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "wb") as tmp_file:
            tmp_file.write(json_bytes)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(tmp_name, path)
        tmp_name = None
    except OSError as e:
        logger.error("Failed to write JSON file", path=str(path), error=str(e))
        raise FileWriteError(f"Failed to write {path}: {e}", str(path), e) from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    logger.debug("Wrote JSON file", path=str(path), size=len(json_bytes))
    return {
        "bytes": len(json_bytes),
        "sha1": hashlib.sha1(json_bytes).hexdigest(),
    }


def read_json(path: Path) -> Optional[Any]:
    """Read a JSON document, returning None when missing or unreadable."""
    if not path.exists():
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Failed to read JSON file", path=str(path), error=str(e))
        return None
