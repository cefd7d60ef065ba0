"""
Durable JSON state files.

State is written to ``<path>.tmp``, flushed and fsynced, then moved over the
target with ``os.replace`` so a crash leaves either the old or the new file,
never a partial one.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger("tokengen.core.state_file")


def write_json_atomic(path: str, payload: Any) -> None:
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    tmp_path = f"{path}.tmp"
    with open(tmp_path, "w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=True)
        handle.flush()
        os.fsync(handle.fileno())
    os.replace(tmp_path, path)


def read_json(path: str) -> Optional[Dict[str, Any]]:
    """Load a JSON state file, returning None when it does not exist.

    A file that exists but cannot be parsed raises: silently starting from
    empty state would allow a resumed run to repeat completed transfers.
    """
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as handle:
        try:
            data = json.load(handle)
        except json.JSONDecodeError as exc:
            logger.error("Corrupt state file %s", path, exc_info=exc)
            raise
    if not isinstance(data, dict):
        raise ValueError(f"State file {path} must contain a JSON object")
    return data
