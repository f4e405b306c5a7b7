import hashlib
import logging
from typing import List, Optional, Any

import numpy as np

from .config import Config
from .text_utils import clean_text, extract_keywords

try:
    from sentence_transformers import SentenceTransformer
except ImportError:
    SentenceTransformer = None

logger = logging.getLogger(__name__)


# -------------------------
# Lightweight hashing encoder (offline runs and tests)
# -------------------------
class TextHasher:
    def __init__(self, dim: int = None, seed: int = None):
        self.dim = dim or Config.core.VECTOR_DIM
        self.seed = Config.core.SEED if seed is None else seed

    def _hash(self, s: str) -> int:
        h = hashlib.blake2b((str(self.seed) + s).encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(h, "little")

    def encode(self, text: str) -> np.ndarray:
        vec = np.zeros(self.dim, dtype=np.float32)
        for tok in text.lower().split():
            idx = self._hash(tok) % self.dim
            sign = 1 if (self._hash(tok + "sign") % 2 == 0) else -1
            vec[idx] += sign * 1.0
        norm = np.linalg.norm(vec) + 1e-8
        return vec / norm

    def encode_batch(self, texts: List[str]) -> np.ndarray:
        return np.stack([self.encode(t) for t in texts], axis=0)


class TextMiniLM:
    def __init__(self, model_name: str = None, device: str = None):
        model_name = model_name or Config.embedding.MINILM_MODEL
        device = device or Config.embedding.DEVICE or None
        if SentenceTransformer is None:
            raise RuntimeError(
                "sentence-transformers is required for MiniLM encoding. "
                "Install it with `pip install sentence-transformers`."
            )
        self.model = SentenceTransformer(model_name, device=device)

    def encode(self, text: str) -> np.ndarray:
        vec = self.model.encode(text, normalize_embeddings=True)
        return vec.astype("float32")


# -------------------------
# NLP collaborator used by the pipeline
# -------------------------
class TextProcessor:
    """
    Turns raw idea text into keyword tokens and an optional dense embedding.

    Any encoder exposing `encode(text) -> np.ndarray` works. A missing
    embedding is a normal outcome (blank/short text, encoder failure) and is
    returned as None rather than raised.
    """

    def __init__(self, encoder: Optional[Any] = None, min_embed_chars: int = None):
        self.encoder = encoder
        self.min_embed_chars = (
            Config.embedding.MIN_EMBED_CHARS if min_embed_chars is None else min_embed_chars
        )

    @classmethod
    def init(cls, encoder_mode: str = "minilm") -> "TextProcessor":
        """Build a processor with the named encoder: "minilm", "hash" or "none"."""
        if encoder_mode == "minilm":
            return cls(TextMiniLM())
        if encoder_mode == "hash":
            return cls(TextHasher())
        if encoder_mode == "none":
            return cls(None)
        raise ValueError(f"Unknown encoder mode: {encoder_mode}")

    def tokenize(self, text: str) -> List[str]:
        return extract_keywords(text)

    def embed(self, text: str) -> Optional[np.ndarray]:
        text = clean_text(text)
        if self.encoder is None or len(text) < self.min_embed_chars:
            return None
        try:
            vec = self.encoder.encode(text)
        except Exception as e:
            logger.warning(f"Embedding failed for {text[:40]!r}: {e}")
            return None
        if vec is None:
            return None
        vec = np.asarray(vec, dtype=np.float32).reshape(-1)
        if vec.size == 0 or not np.all(np.isfinite(vec)):
            return None
        return vec
