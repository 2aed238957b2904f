"""Configuration paths, defaults and logging setup for flf."""

from __future__ import annotations

import logging
from typing import Any, Set, Tuple

from .config_manager import (
    BASE_DIR,
    load_editor_config,
    load_embedding_config,
    load_search_config,
)

logger = logging.getLogger(__name__)

LOG_DIR = BASE_DIR / "logs"
LOG_FILE = LOG_DIR / "flf.log"
MODEL_CACHE_DIR = BASE_DIR / "models"
DEFAULT_DB_PATH = ".flf.db"

SKIP_DIRS: Set[str] = {
    ".venv", "venv", "__pycache__", "node_modules", ".git",
    "site-packages", ".tox", ".pytest_cache", "build", "dist",
    ".mypy_cache", ".ruff_cache", "htmlcov", ".eggs",
    ".flf", ".flf.db", ".idea", ".vscode",
}
# Directory names matched by suffix, e.g. ``flf_cli.egg-info``
SKIP_DIR_SUFFIXES: Tuple[str, ...] = (".egg-info",)

MAX_SEARCH_LIMIT = 200


def is_skipped_dir(name: str) -> bool:
    """Return True if a directory called *name* is never indexed."""
    return name in SKIP_DIRS or name.endswith(SKIP_DIR_SUFFIXES)


def resolve_limit(value: Any, default: int = 20) -> int:
    """Coerce a configured result limit, falling back to *default* when invalid."""
    try:
        limit = int(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring invalid [search] limit %r in config", value)
        return default
    if not 1 <= limit <= MAX_SEARCH_LIMIT:
        logger.warning("Ignoring out-of-range [search] limit %d in config", limit)
        return default
    return limit


_search_config = load_search_config()
_emb_config = load_embedding_config()
_editor_config = load_editor_config()

# Number of results requested per keystroke
SEARCH_LIMIT = resolve_limit(_search_config.get("limit", 20))

# Embedding model key, see embeddings.EMBEDDING_MODELS (default: "hash" = no download)
EMBEDDING_MODEL = _emb_config.get("model", "hash")

# Editor the selection is formatted for when -e is not given
DEFAULT_EDITOR = _editor_config.get("default", "cmd")


def setup_logging(verbose: bool = False) -> None:
    """Route flf logs to the log file, and to stderr when *verbose*.

    The interactive console owns the terminal while it runs, so log records
    never go to the screen unless explicitly asked for.
    """
    root = logging.getLogger("flf_cli")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    if root.handlers:
        return

    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
    except OSError:
        handler = logging.NullHandler()
    root.addHandler(handler)

    if verbose:
        from rich.console import Console
        from rich.logging import RichHandler

        root.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
