"""Search core: chunk, embed, store and rank code for the console and CLI."""

from __future__ import annotations

import asyncio
import logging
import math
import threading
from pathlib import Path
from typing import List, Optional, Union

from .buffers import load_buffer_info
from .embeddings import Embedder, chunk_text_for_embedding, get_embedder
from .models import Chunk, ResultItem
from .parser import Chunker, CodeChunker, chunk_directory
from .vector_store import LanceVectorStore, MemoryVectorStore

logger = logging.getLogger(__name__)

VectorStore = Union[MemoryVectorStore, LanceVectorStore]


class BackendInitError(RuntimeError):
    """The embedding model or vector store could not be started."""


class SearchCore:
    """Owns the embedder and vector store behind every search.

    ``search`` is the asynchronous backend contract used by the console:
    embedding and scanning run in a worker thread so the event loop keeps
    processing keystrokes while a lookup is in flight.  Lookups are
    serialised: tokenizers and stores are not safe to share between threads.
    """

    def __init__(
        self,
        embedder: Embedder,
        store: VectorStore,
        chunker: Optional[Chunker] = None,
    ) -> None:
        self.embedder = embedder
        self.store = store
        self._chunker = chunker
        self._search_lock = threading.Lock()

    @classmethod
    def init(cls, db_path: Optional[Path] = None, model_key: Optional[str] = None) -> "SearchCore":
        """Build a core with an in-memory store, or LanceDB at *db_path*.

        Raises:
            BackendInitError: if the model or the store fails to start.
        """
        try:
            embedder = get_embedder(model_key)
        except (ImportError, ValueError, OSError, RuntimeError) as exc:
            raise BackendInitError(f"Failed to load embedding model: {exc}") from exc

        try:
            store: VectorStore = LanceVectorStore(db_path) if db_path else MemoryVectorStore()
        except (ImportError, OSError, RuntimeError, ValueError) as exc:
            raise BackendInitError(f"Failed to open vector store at {db_path}: {exc}") from exc

        logger.info(
            "Search core ready (model=%s, store=%s)",
            getattr(embedder, "model_key", "?"), type(store).__name__,
        )
        return cls(embedder, store)

    @property
    def chunker(self) -> Chunker:
        if self._chunker is None:
            self._chunker = CodeChunker()
        return self._chunker

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def index_directory(self, dir_path: Path) -> int:
        """Chunk and index every supported file below *dir_path*."""
        chunks = chunk_directory(dir_path, self.chunker)
        return self.add_chunks(chunks)

    def index_buffers(self, buffer_info_path: Path) -> int:
        """Chunk and index the buffers in an editor export file.

        Raises:
            BufferExportError: if the export file is malformed.
        """
        chunks: List[Chunk] = []
        for buf in load_buffer_info(buffer_info_path):
            chunks.extend(self.chunker.chunk_source(buf.buffername, buf.content))
        return self.add_chunks(chunks)

    def add_chunks(self, chunks: List[Chunk]) -> int:
        if not chunks:
            return 0
        texts = [
            chunk_text_for_embedding(c.entity, c.parent_info, c.inline_document, c.content)
            for c in chunks
        ]
        self.store.add_chunks(chunks, self.embedder.embed_documents(texts))
        logger.info("Indexed %d chunks", len(chunks))
        return len(chunks)

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def search_sync(self, query_text: str, limit: int) -> List[ResultItem]:
        """Rank chunks for *query_text*; rank is 1-based in backend order.

        A blank query (or one without any searchable token) yields the
        default listing: the first *limit* chunks in index order.
        """
        if limit <= 0:
            return []

        with self._search_lock:
            vector = self.embedder.embed_text(query_text) if query_text.strip() else []
            if not any(vector):
                hits = [(chunk, 0.0) for chunk in self.store.head(limit)]
            else:
                hits = self.store.search(vector, limit)

        return [
            _to_result(chunk, rank, distance)
            for rank, (chunk, distance) in enumerate(hits, 1)
        ]

    async def search(self, query_text: str, limit: int) -> List[ResultItem]:
        return await asyncio.to_thread(self.search_sync, query_text, limit)

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> "SearchCore":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def _to_result(chunk: Chunk, rank: int, distance: float) -> ResultItem:
    if math.isnan(distance):
        distance = 1.0
    return ResultItem(
        file_path=chunk.file_path,
        entity=chunk.entity,
        parent_info=chunk.parent_info,
        content=chunk.content,
        language=chunk.language,
        start=chunk.start,
        end=chunk.end,
        rank=rank,
        score=f"{distance:.4f}",
    )
