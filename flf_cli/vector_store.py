"""Vector stores for code chunk embeddings.

``MemoryVectorStore`` keeps everything in process and backs the interactive
console, which re-indexes on every start.  ``LanceVectorStore`` persists to a
LanceDB directory (serverless, local-first) so ``flf index`` and ``flf query``
can run as separate invocations.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .embeddings import cosine_similarity
from .models import Chunk, CursorPoint

logger = logging.getLogger(__name__)

try:
    import lancedb  # type: ignore[import-untyped]
    LANCE_AVAILABLE = True
except ImportError:
    LANCE_AVAILABLE = False

# (chunk, cosine distance) pairs, nearest first
Hits = List[Tuple[Chunk, float]]


class MemoryVectorStore:
    """Brute-force cosine search over an in-memory list of chunks."""

    def __init__(self) -> None:
        self._chunks: List[Chunk] = []
        self._vectors: List[List[float]] = []

    def add_chunks(self, chunks: List[Chunk], embeddings: List[List[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        self._chunks.extend(chunks)
        self._vectors.extend(embeddings)

    def search(self, query_embedding: List[float], n_results: int = 20) -> Hits:
        scored = [
            (chunk, 1.0 - cosine_similarity(query_embedding, vec))
            for chunk, vec in zip(self._chunks, self._vectors)
        ]
        # sorted() is stable: ties keep index order
        scored.sort(key=lambda pair: pair[1])
        return scored[:n_results]

    def head(self, limit: int = 20) -> List[Chunk]:
        return self._chunks[:limit]

    def count(self) -> int:
        return len(self._chunks)

    def clear(self) -> None:
        self._chunks.clear()
        self._vectors.clear()

    def close(self) -> None:
        pass


class LanceVectorStore:
    """LanceDB-backed chunk store.

    Schema per row:

    =============== ============ ==============================
    Column          Type         Description
    =============== ============ ==============================
    vector          float32[dim] Embedding vector
    content         utf8         Chunk source text
    file_path       utf8         Absolute path or buffer name
    file_name       utf8         Base name of ``file_path``
    entity          utf8         Definition name
    parent_info     utf8         Dot-joined enclosing scopes
    inline_document utf8         Docstring / doc comment
    language        utf8         Language tag
    start_row ...   int64        Start / end (row, column)
    =============== ============ ==============================
    """

    TABLE_NAME = "chunks"

    def __init__(self, db_dir: Path) -> None:
        if not LANCE_AVAILABLE:
            raise ImportError(
                "lancedb is not installed. Install with: pip install lancedb pyarrow"
            )
        self.db_dir = db_dir
        self.db_dir.mkdir(parents=True, exist_ok=True)
        self._db: Any = lancedb.connect(str(self.db_dir))
        self._table: Optional[Any] = None
        if self.TABLE_NAME in self._db.table_names():
            self._table = self._db.open_table(self.TABLE_NAME)

    # ------------------------------------------------------------------
    # Write operations
    # ------------------------------------------------------------------

    def add_chunks(self, chunks: List[Chunk], embeddings: List[List[float]]) -> None:
        if len(chunks) != len(embeddings):
            raise ValueError("chunks and embeddings must have the same length")
        if not chunks:
            return

        rows = [_chunk_to_row(chunk, emb) for chunk, emb in zip(chunks, embeddings)]
        if self._table is None:
            self._table = self._db.create_table(self.TABLE_NAME, data=rows, mode="overwrite")
        else:
            self._table.add(rows)

    def clear(self) -> None:
        """Drop all data; the table is recreated on the next insert."""
        if self.TABLE_NAME in self._db.table_names():
            self._db.drop_table(self.TABLE_NAME)
        self._table = None

    # ------------------------------------------------------------------
    # Read operations
    # ------------------------------------------------------------------

    def search(self, query_embedding: List[float], n_results: int = 20) -> Hits:
        if self._table is None:
            return []
        rows = (
            self._table
            .search(query_embedding)
            .metric("cosine")
            .limit(n_results)
            .to_list()
        )
        # With cosine metric, _distance is 1 - cos_sim, in [0, 2]
        return [(_row_to_chunk(row), float(row.get("_distance", 0.0))) for row in rows]

    def head(self, limit: int = 20) -> List[Chunk]:
        if self._table is None:
            return []
        return [_row_to_chunk(row) for row in self._table.head(limit).to_pylist()]

    def count(self) -> int:
        if self._table is None:
            return 0
        return self._table.count_rows()

    def close(self) -> None:
        self._table = None


def _chunk_to_row(chunk: Chunk, embedding: List[float]) -> Dict[str, Any]:
    return {
        "vector": embedding,
        "content": chunk.content,
        "file_path": chunk.file_path,
        "file_name": chunk.file_name,
        "entity": chunk.entity,
        "parent_info": chunk.parent_info,
        "inline_document": chunk.inline_document,
        "language": chunk.language,
        "start_row": chunk.start.row,
        "start_column": chunk.start.column,
        "end_row": chunk.end.row,
        "end_column": chunk.end.column,
    }


def _row_to_chunk(row: Dict[str, Any]) -> Chunk:
    return Chunk(
        file_path=row.get("file_path", ""),
        file_name=row.get("file_name", ""),
        entity=row.get("entity", ""),
        parent_info=row.get("parent_info", ""),
        inline_document=row.get("inline_document", ""),
        language=row.get("language", ""),
        content=row.get("content", ""),
        start=CursorPoint(int(row.get("start_row", 0)), int(row.get("start_column", 0))),
        end=CursorPoint(int(row.get("end_row", 0)), int(row.get("end_column", 0))),
    )
