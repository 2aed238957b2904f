"""Result list and preview panes of the search console.

Both panes are display state only: the console decides when they change,
the prompt_toolkit layout pulls their formatted text on every render.
"""

from __future__ import annotations

import io
from typing import List, Optional, Sequence, Tuple

from prompt_toolkit.data_structures import Point
from prompt_toolkit.formatted_text import ANSI
from rich.console import Console
from rich.syntax import Syntax

from .models import ResultItem

LOGO = """

 ███████╗ ██╗      ███████╗
 ██╔════╝ ██║      ██╔════╝
 █████╗   ██║      █████╗
 ██╔══╝   ██║      ██╔══╝
 ██║      ███████╗ ██║
 ╚═╝      ╚══════╝ ╚═╝
"""

# Pygments lexer names for chunker language tags that differ
_LEXER_ALIASES = {"tsx": "typescript", "c_sharp": "csharp"}

Fragments = List[Tuple[str, str]]


class ResultPane:
    """Ordered results in backend rank order plus a saturating cursor."""

    def __init__(self) -> None:
        self._items: Tuple[ResultItem, ...] = ()
        self._cursor = 0

    @property
    def items(self) -> Tuple[ResultItem, ...]:
        return self._items

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._items)

    def replace(self, items: Sequence[ResultItem]) -> None:
        self._items = tuple(items)
        self._cursor = 0

    def move_cursor(self, delta: int) -> bool:
        """Move by *delta*, clamped to the list; return True if it moved."""
        if not self._items:
            return False
        target = min(max(self._cursor + delta, 0), len(self._items) - 1)
        moved = target != self._cursor
        self._cursor = target
        return moved

    def current(self) -> Optional[ResultItem]:
        if not self._items:
            return None
        return self._items[self._cursor]

    def titles(self) -> List[str]:
        return [item.title for item in self._items]

    def render(self) -> Fragments:
        if not self._items:
            return [("class:result.empty", "No results")]
        fragments: Fragments = []
        for idx, title in enumerate(self.titles()):
            style = "class:result.selected" if idx == self._cursor else "class:result"
            fragments.append((style, title))
            fragments.append(("", "\n"))
        return fragments

    def cursor_position(self) -> Point:
        # Keeps the selected row scrolled into view
        return Point(x=0, y=self._cursor)


class PreviewPane:
    """Syntax-highlighted view of the selected chunk, rendered with rich."""

    def __init__(self, width: int = 200, theme: str = "monokai") -> None:
        self.width = width
        self.theme = theme
        self.content = ""
        self.language = ""
        self._rendered = ANSI(LOGO)

    def show(self, content: str, language: str) -> None:
        self.content = content
        self.language = language
        self._rendered = ANSI(self._highlight(content, language))

    def show_banner(self) -> None:
        self.content = ""
        self.language = ""
        self._rendered = ANSI(LOGO)

    def render(self) -> ANSI:
        return self._rendered

    def _highlight(self, content: str, language: str) -> str:
        lexer = _LEXER_ALIASES.get(language, language) or "text"
        buffer = io.StringIO()
        console = Console(
            file=buffer,
            force_terminal=True,
            color_system="256",
            width=self.width,
        )
        console.print(
            Syntax(content, lexer, theme=self.theme, background_color="default"),
            end="",
        )
        return buffer.getvalue()
