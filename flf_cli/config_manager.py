"""TOML configuration loader for flf (``$FLF_HOME/config.toml``)."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

import toml

BASE_DIR = Path(os.environ.get("FLF_HOME", str(Path.home() / ".flf"))).expanduser()
CONFIG_FILE = BASE_DIR / "config.toml"

DEFAULT_SEARCH_CONFIG: Dict[str, Any] = {"limit": 20}
DEFAULT_EMBEDDING_CONFIG: Dict[str, Any] = {"model": "hash"}
DEFAULT_EDITOR_CONFIG: Dict[str, Any] = {"default": "cmd"}


def load_full_config() -> Dict[str, Any]:
    """Load the entire TOML config (all sections)."""
    if not CONFIG_FILE.exists():
        return {}
    try:
        with open(CONFIG_FILE, "r") as f:
            return toml.load(f)
    except (OSError, toml.TomlDecodeError):
        return {}


def _section(name: str, defaults: Dict[str, Any]) -> Dict[str, Any]:
    section = load_full_config().get(name, {})
    if not isinstance(section, dict):
        return defaults.copy()
    return {**defaults, **section}


def load_search_config() -> Dict[str, Any]:
    """Return the ``[search]`` section merged over defaults."""
    return _section("search", DEFAULT_SEARCH_CONFIG)


def load_embedding_config() -> Dict[str, Any]:
    """Return the ``[embeddings]`` section merged over defaults."""
    return _section("embeddings", DEFAULT_EMBEDDING_CONFIG)


def load_editor_config() -> Dict[str, Any]:
    """Return the ``[editor]`` section merged over defaults."""
    return _section("editor", DEFAULT_EDITOR_CONFIG)
