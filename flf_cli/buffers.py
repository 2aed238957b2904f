"""Loader for editor buffer snapshots exported as JSON.

The editor plugin writes an array of records, one per open buffer::

    [{"buffername": "/src/app.py", "content": "def main(): ..."}, ...]

``bufferName`` and ``buffer_name`` are accepted as spellings of the name key.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

logger = logging.getLogger(__name__)


class BufferExportError(ValueError):
    """The buffer export file is missing, unreadable or malformed."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid buffer export '{path}': {reason}")


class BufferInfo(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)

    buffername: str = Field(
        validation_alias=AliasChoices("buffername", "bufferName", "buffer_name"),
    )
    content: str


_BUFFER_LIST = TypeAdapter(List[BufferInfo])


def load_buffer_info(path: Path) -> List[BufferInfo]:
    """Read and validate the buffer export at *path*.

    Raises:
        BufferExportError: with the offending path, for I/O, JSON or
            schema errors.
    """
    try:
        data = path.read_text(encoding="utf-8")
    except OSError as exc:
        logger.error("Error reading buffer export %s: %s", path, exc)
        raise BufferExportError(path, str(exc)) from exc

    try:
        buffers = _BUFFER_LIST.validate_json(data)
    except ValidationError as exc:
        logger.error("Error parsing buffer export %s: %s", path, exc)
        first = exc.errors()[0] if exc.errors() else {"msg": str(exc)}
        location = ".".join(str(part) for part in first.get("loc", ()))
        reason = f"{first['msg']} at {location}" if location else first["msg"]
        raise BufferExportError(path, reason) from exc

    logger.info("Loaded %d buffers from %s", len(buffers), path)
    return buffers
