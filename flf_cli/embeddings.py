"""Code embedding models for the semantic index.

========== ====================================== ====== =========================
Key        HuggingFace Model                      Dim    Notes
========== ====================================== ====== =========================
jina-code  jinaai/jina-embeddings-v2-base-code     768   Code-aware, ~550 MB
bge-small  BAAI/bge-small-en-v1.5                  384   General purpose, ~130 MB
minilm     sentence-transformers/all-MiniLM-L6-v2  384   Tiny and fast, ~80 MB
hash       (none)                                  256   No ML, keyword-level only
========== ====================================== ====== =========================

Transformer models need the ``embeddings`` extra (``torch`` + ``transformers``);
weights are cached under ``$FLF_HOME/models``.  Inference runs on-device.
"""

from __future__ import annotations

import logging
import math
import re
import threading
from hashlib import blake2b
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol

from .config import MODEL_CACHE_DIR

logger = logging.getLogger(__name__)

_TOKEN_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
# camelCase / snake_case boundaries, so "parseConfig" also matches "config"
_SUBTOKEN_RE = re.compile(r"[A-Z]?[a-z0-9]+|[A-Z]+(?![a-z])")

EMBEDDING_MODELS: Dict[str, Dict[str, Any]] = {
    "jina-code": {
        "hf_id": "jinaai/jina-embeddings-v2-base-code",
        "dim": 768,
        "max_tokens": 8192,
        "pooling": "mean",
        "trust_remote_code": True,
    },
    "bge-small": {
        "hf_id": "BAAI/bge-small-en-v1.5",
        "dim": 384,
        "max_tokens": 512,
        "pooling": "cls",
        "trust_remote_code": False,
    },
    "minilm": {
        "hf_id": "sentence-transformers/all-MiniLM-L6-v2",
        "dim": 384,
        "max_tokens": 256,
        "pooling": "mean",
        "trust_remote_code": False,
    },
    "hash": {
        "hf_id": None,
        "dim": 256,
        "max_tokens": None,
        "pooling": None,
        "trust_remote_code": False,
    },
}

DEFAULT_MODEL = "hash"


class Embedder(Protocol):
    model_key: str
    dim: int

    def embed_text(self, text: str) -> List[float]: ...

    def embed_documents(self, texts: List[str]) -> List[List[float]]: ...


class TransformerEmbedder:
    """HuggingFace embedding engine with mean or ``[CLS]`` pooling.

    Loading is eager so that a missing model or a broken install is
    reported before the console takes over the terminal.
    """

    def __init__(
        self,
        model_key: str,
        cache_dir: Optional[Path] = None,
        device: str = "cpu",
    ) -> None:
        spec = EMBEDDING_MODELS.get(model_key)
        if spec is None or spec["hf_id"] is None:
            raise ValueError(
                f"Unknown transformer model: '{model_key}'. "
                f"Available: {', '.join(k for k, v in EMBEDDING_MODELS.items() if v['hf_id'])}"
            )

        self.model_key = model_key
        self.hf_id: str = spec["hf_id"]
        self.dim: int = spec["dim"]
        self.max_length: int = spec["max_tokens"]
        self.pooling: str = spec["pooling"]
        self.cache_dir = cache_dir or MODEL_CACHE_DIR
        self.device = device
        # The fast tokenizer mutates its truncation state on every call
        self._lock = threading.Lock()

        try:
            from transformers import AutoModel, AutoTokenizer
        except ImportError as exc:
            raise ImportError(
                "torch and transformers are required for neural embeddings.\n"
                "Install with:  pip install flf-cli[embeddings]"
            ) from exc

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        logger.info("Loading embedding model '%s' (%s)", self.model_key, self.hf_id)
        self._tokenizer = AutoTokenizer.from_pretrained(
            self.hf_id,
            cache_dir=str(self.cache_dir),
            trust_remote_code=spec["trust_remote_code"],
        )
        self._model = AutoModel.from_pretrained(
            self.hf_id,
            cache_dir=str(self.cache_dir),
            trust_remote_code=spec["trust_remote_code"],
        )
        self._model.eval()
        self._model.to(self.device)

    def _encode(self, texts: List[str]) -> List[List[float]]:
        import torch
        import torch.nn.functional as F

        with self._lock:
            batch = self._tokenizer(
                texts,
                max_length=self.max_length,
                padding=True,
                truncation=True,
                return_tensors="pt",
            )
            batch = {k: v.to(self.device) for k, v in batch.items()}
            with torch.no_grad():
                hidden = self._model(**batch).last_hidden_state

        if self.pooling == "cls":
            pooled = hidden[:, 0]
        else:
            mask = batch["attention_mask"].unsqueeze(-1).expand(hidden.size()).float()
            pooled = (hidden * mask).sum(dim=1) / mask.sum(dim=1).clamp(min=1e-9)
        return F.normalize(pooled, p=2, dim=1).cpu().tolist()

    def embed_text(self, text: str) -> List[float]:
        return self._encode([text])[0]

    def embed_documents(self, texts: List[str], batch_size: int = 16) -> List[List[float]]:
        out: List[List[float]] = []
        for i in range(0, len(texts), batch_size):
            out.extend(self._encode(texts[i:i + batch_size]))
        return out


class HashEmbeddingModel:
    """Deterministic token-hashing embedder, no ML dependencies.

    Identifiers are split on camelCase and snake_case boundaries so a
    partial query like ``conf`` still lands near ``loadConfig``.
    """

    model_key = "hash"

    def __init__(self, dim: int = 256) -> None:
        self.dim = dim

    def embed_text(self, text: str) -> List[float]:
        vec = [0.0] * self.dim
        for token in _tokenize(text):
            digest = blake2b(token.encode("utf-8"), digest_size=8).digest()
            idx = int.from_bytes(digest[:4], "big") % self.dim
            sign = 1.0 if (digest[4] & 1) == 0 else -1.0
            vec[idx] += sign
        return _l2_normalize(vec)

    def embed_many(self, texts: Iterable[str]) -> List[List[float]]:
        return [self.embed_text(text) for text in texts]

    def embed_documents(self, texts: List[str]) -> List[List[float]]:
        return self.embed_many(texts)


def get_embedder(model_key: Optional[str] = None, device: str = "cpu") -> Embedder:
    """Return the embedder for *model_key* (default: ``[embeddings].model``).

    Raises ``ValueError`` for unknown keys and ``ImportError`` / ``OSError``
    when a transformer model cannot be loaded; the caller decides whether
    that is fatal.
    """
    if model_key is None:
        from .config import EMBEDDING_MODEL
        model_key = EMBEDDING_MODEL

    if model_key not in EMBEDDING_MODELS:
        raise ValueError(
            f"Unknown embedding model '{model_key}'. "
            f"Available: {', '.join(EMBEDDING_MODELS)}"
        )
    if model_key == "hash":
        return HashEmbeddingModel(dim=EMBEDDING_MODELS["hash"]["dim"])
    return TransformerEmbedder(model_key=model_key, device=device)


def chunk_text_for_embedding(entity: str, parent_info: str, docs: str, content: str) -> str:
    """Text representation of a chunk fed to the embedder."""
    qualname = ".".join(p for p in (parent_info, entity) if p)
    return "\n".join(p for p in (qualname, docs, content) if p)


def cosine_similarity(vec_a: List[float], vec_b: List[float]) -> float:
    """Cosine similarity in ``[-1, 1]``; zero-length or mismatched vectors give 0."""
    if not vec_a or not vec_b or len(vec_a) != len(vec_b):
        return 0.0
    dot = sum(a * b for a, b in zip(vec_a, vec_b))
    norm_a = math.sqrt(sum(a * a for a in vec_a))
    norm_b = math.sqrt(sum(b * b for b in vec_b))
    if norm_a < 1e-12 or norm_b < 1e-12:
        return 0.0
    return dot / (norm_a * norm_b)


def _tokenize(text: str) -> List[str]:
    tokens: List[str] = []
    for word in _TOKEN_RE.findall(text):
        lowered = word.lower()
        tokens.append(lowered)
        parts = [p.lower() for p in _SUBTOKEN_RE.findall(word)]
        if len(parts) > 1:
            tokens.extend(parts)
    return tokens


def _l2_normalize(vec: List[float]) -> List[float]:
    norm = math.sqrt(sum(v * v for v in vec))
    if norm < 1e-12:
        return vec
    return [v / norm for v in vec]
