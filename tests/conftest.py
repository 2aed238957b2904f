"""Pytest configuration and fixtures for flf tests."""

import asyncio
import json
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Dict, Generator, List, Tuple

import pytest

from flf_cli.models import CursorPoint, ResultItem


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch, tmp_path: Path):
    """Keep log files out of the real ``~/.flf`` during tests."""
    log_dir = tmp_path / "flf-home" / "logs"
    monkeypatch.setattr("flf_cli.config.LOG_DIR", log_dir)
    monkeypatch.setattr("flf_cli.config.LOG_FILE", log_dir / "flf.log")


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    tmp = Path(tempfile.mkdtemp())
    yield tmp
    shutil.rmtree(tmp, ignore_errors=True)


@pytest.fixture
def sample_project_path() -> Path:
    """Get path to sample test project."""
    return Path(__file__).parent / "fixtures" / "sample_project"


@pytest.fixture
def sample_python_code() -> str:
    """Sample Python code for testing the chunker."""
    return '''"""Sample module for testing."""
import os

def hello(name: str) -> str:
    """Say hello."""
    return f"Hello, {name}!"

class Calculator:
    """Simple calculator."""

    def add(self, a: int, b: int) -> int:
        """Add two numbers."""
        return a + b

    @staticmethod
    def multiply(a: int, b: int) -> int:
        # comments are not chunks
        return a * b
'''


@pytest.fixture
def buffer_export(temp_dir: Path, sample_python_code: str) -> Path:
    """A buffer export as written by the editor plugin."""
    path = temp_dir / "buffers.json"
    path.write_text(json.dumps([
        {"buffername": "/work/calc.py", "content": sample_python_code},
        {"bufferName": "/work/notes.txt", "content": "not code"},
    ]))
    return path


@pytest.fixture
def make_item() -> Callable[..., ResultItem]:
    """Factory for ResultItem values."""

    def _make(entity: str, rank: int = 1, file_path: str = "/src/app.py", row: int = 0) -> ResultItem:
        return ResultItem(
            file_path=file_path,
            entity=entity,
            parent_info="",
            content=f"def {entity}():\n    pass",
            language="python",
            start=CursorPoint(row, 0),
            end=CursorPoint(row + 1, 8),
            rank=rank,
            score="0.1000",
        )

    return _make


class ControlledBackend:
    """Backend whose responses are released by the test, in any order."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, int, "asyncio.Future[List[ResultItem]]"]] = []

    async def search(self, query_text: str, limit: int) -> List[ResultItem]:
        future = asyncio.get_running_loop().create_future()
        self.calls.append((query_text, limit, future))
        return await future

    @property
    def queries(self) -> List[str]:
        return [text for text, _, _ in self.calls]

    def respond(self, index: int, items: List[ResultItem]) -> None:
        self.calls[index][2].set_result(items)

    def fail(self, index: int, exc: Exception) -> None:
        self.calls[index][2].set_exception(exc)


class StaticBackend:
    """Backend answering immediately from a canned table."""

    def __init__(self, table: Dict[str, List[ResultItem]]) -> None:
        self.table = table
        self.queries: List[str] = []

    async def search(self, query_text: str, limit: int) -> List[ResultItem]:
        self.queries.append(query_text)
        return self.table.get(query_text.strip(), [])[:limit]


@pytest.fixture
def controlled_backend() -> ControlledBackend:
    return ControlledBackend()


@pytest.fixture
def static_backend_cls():
    return StaticBackend
