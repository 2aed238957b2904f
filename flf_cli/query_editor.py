"""In-progress query text owned by the console."""

from __future__ import annotations

from typing import List


class QueryEditor:
    """Append / delete-last / clear editing over an opaque character sequence."""

    def __init__(self) -> None:
        self._chars: List[str] = []

    def append(self, char: str) -> None:
        self._chars.append(char)

    def delete_last(self) -> None:
        if self._chars:
            self._chars.pop()

    def clear(self) -> None:
        self._chars.clear()

    def current_text(self) -> str:
        return "".join(self._chars)

    def __len__(self) -> int:
        return len(self._chars)
