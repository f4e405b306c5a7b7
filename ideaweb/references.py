"""
Proactive references: while a new idea is being drafted, surface the few
existing ideas it most resembles.
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple

import faiss
import numpy as np

from .config import Config
from .store import Idea

logger = logging.getLogger(__name__)


class VectorIndex:
    """Flat inner-product index over L2-normalised vectors (cosine search)."""

    def __init__(self, dim: int):
        self.dim = dim
        self._lock = threading.RLock()
        self.index = faiss.IndexFlatIP(dim)
        self.id_to_key: List[str] = []

    @staticmethod
    def _normalise(vec: np.ndarray) -> np.ndarray:
        vec = np.asarray(vec, dtype="float32").reshape(1, -1).copy()
        vec /= (np.linalg.norm(vec) + 1e-8)
        return vec

    def add(self, key: str, vec: np.ndarray):
        with self._lock:
            self.index.add(self._normalise(vec))
            self.id_to_key.append(key)

    def search(self, query: np.ndarray, top_k: int = 5) -> List[Tuple[str, float]]:
        with self._lock:
            if self.index.ntotal == 0:
                return []
            k = min(top_k, self.index.ntotal)
            D, I = self.index.search(self._normalise(query), k)
            results = []
            for score, idx in zip(D[0], I[0]):
                if 0 <= idx < len(self.id_to_key):
                    results.append((self.id_to_key[idx], float(score)))
            return results


class ReferenceFinder:
    def __init__(
        self,
        store,
        embed: Callable[[str], Optional[np.ndarray]],
        pool_size: int = None,
        threshold: float = None,
        top_k: int = None,
        min_chars: int = None,
    ):
        cfg = Config.references
        self.store = store
        self.embed = embed
        self.pool_size = cfg.POOL_SIZE if pool_size is None else pool_size
        self.threshold = cfg.THRESHOLD if threshold is None else threshold
        self.top_k = cfg.TOP_K if top_k is None else top_k
        self.min_chars = cfg.MIN_CHARS if min_chars is None else min_chars

    def find(self, text: str) -> List[Idea]:
        """Up to top_k recent ideas similar to `text`, most similar first."""
        if len(text.strip()) <= self.min_chars:
            return []
        query = self.embed(text)
        if query is None:
            return []
        query = np.asarray(query, dtype="float32").reshape(-1)

        pool = {}
        index = VectorIndex(query.size)
        for idea in self.store.recent_ideas(self.pool_size):
            if idea.embedding is None or idea.embedding.size != query.size:
                continue
            index.add(idea.idea_id, idea.embedding)
            pool[idea.idea_id] = idea

        hits = [(key, score) for key, score in index.search(query, self.top_k) if score >= self.threshold]
        logger.debug(f"References for {text[:40]!r}: {hits}")
        return [pool[key] for key, _ in hits]
