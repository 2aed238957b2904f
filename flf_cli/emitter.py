"""Turns the final selection into the line an editor plugin consumes."""

from __future__ import annotations

import json
import logging
from typing import IO, Optional

import typer

from .models import EditorTarget, FinalSelection, IndexMode, ResultItem

logger = logging.getLogger(__name__)

# Vim-family jump commands; buffer mode jumps through a helper the plugin defines
_VIM_TEMPLATES = {
    IndexMode.DIR: "<cmd>tabf +{line} {path}<CR>",
    IndexMode.BUF: '<cmd>call FlfJumpToBufWithLine("{path}","{line}")<CR>',
}


def format_selection(
    item: ResultItem,
    editor: EditorTarget,
    mode: IndexMode = IndexMode.DIR,
) -> str:
    """Editor command for *item*.

    ``nvim``/``vim`` get a jump command with the 1-based start line; ``cmd``
    and ``emacs`` get the JSON record of the item.
    """
    if editor in (EditorTarget.NVIM, EditorTarget.VIM):
        return _VIM_TEMPLATES[mode].format(line=item.start.row + 1, path=item.file_path)
    return json.dumps(item.to_record(), ensure_ascii=False)


class OutputEmitter:
    """Writes one formatted line to stdout after the terminal is released."""

    def __init__(self, mode: IndexMode = IndexMode.DIR, file: Optional[IO[str]] = None) -> None:
        self.mode = mode
        self.file = file

    def emit(self, selection: Optional[FinalSelection]) -> Optional[str]:
        if selection is None:
            logger.info("No selection made, nothing to emit")
            return None
        line = format_selection(selection.item, selection.editor, self.mode)
        typer.echo(line, file=self.file)
        logger.info("Emitted selection %s", selection.item.title)
        return line
