"""Core data models shared by indexing, search and the interactive console."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class EditorTarget(str, Enum):
    NVIM = "nvim"
    VIM = "vim"
    EMACS = "emacs"
    CMD = "cmd"


class IndexMode(str, Enum):
    """Where the indexed chunks came from; selects the jump template."""

    DIR = "dir"
    BUF = "buf"


class ConsoleState(Enum):
    EDITING = "editing"
    TERMINATING = "terminating"


@dataclass(frozen=True)
class CursorPoint:
    row: int
    column: int

    def to_dict(self) -> Dict[str, int]:
        return {"row": self.row, "column": self.column}


@dataclass
class Chunk:
    file_path: str
    file_name: str
    entity: str
    parent_info: str
    inline_document: str
    language: str
    content: str
    start: CursorPoint
    end: CursorPoint


@dataclass(frozen=True)
class ResultItem:
    """A ranked match as returned by the search backend."""

    file_path: str
    entity: str
    parent_info: str
    content: str
    language: str
    start: CursorPoint
    end: CursorPoint
    rank: int
    score: str

    @property
    def title(self) -> str:
        return f"{self.file_path}#{self.entity}"

    def to_record(self) -> Dict[str, Any]:
        """JSON-ready record, keyed the way editor plugins consume it."""
        return {
            "rank": self.rank,
            "filePath": self.file_path,
            "entity": self.entity,
            "parentInfo": self.parent_info,
            "content": self.content,
            "language": self.language,
            "score": self.score,
            "cursorInfo": {
                "start": self.start.to_dict(),
                "end": self.end.to_dict(),
            },
        }


@dataclass(frozen=True)
class SearchRequest:
    sequence_number: int
    text: str
    limit: int


@dataclass(frozen=True)
class FinalSelection:
    item: ResultItem
    editor: EditorTarget
