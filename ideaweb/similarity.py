"""
ideaweb.similarity
==================

Hybrid similarity between ideas:

- lexical  : TF-IDF keyword maps compared with weighted Jaccard
- semantic : dense sentence embeddings compared with cosine similarity

Both paths produce candidate edges; the pipeline keeps the strongest score
per target rather than blending the two.
"""

import math
from collections import Counter
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .config import Config

SparseVector = Dict[str, float]
Edge = Tuple[str, float]


# --- TF-IDF ---
def tfidf_vector(
    tokens: Sequence[str],
    corpus_doc_freq: Dict[str, int],
    total_documents: int,
) -> SparseVector:
    if total_documents <= 0 or not tokens:
        return {}
    n = float(total_documents)
    counts = Counter(tokens)
    vector = {}
    for tok, count in counts.items():
        tf = count / len(tokens)
        idf = math.log(n / (corpus_doc_freq.get(tok, 0) + 1))
        vector[tok] = tf * idf
    return vector


# --- Weighted Jaccard ---
def weighted_jaccard(a: SparseVector, b: SparseVector) -> float:
    """Sum of minima over sum of maxima, in [0, 1]."""
    keys = set(a) | set(b)
    if not keys:
        return 0.0
    numerator = 0.0
    denominator = 0.0
    for k in keys:
        # Stale document frequencies can push idf below zero; such terms carry no weight
        wa = max(a.get(k, 0.0), 0.0)
        wb = max(b.get(k, 0.0), 0.0)
        numerator += min(wa, wb)
        denominator += max(wa, wb)
    if denominator <= 0:
        return 0.0
    return numerator / denominator


# --- Cosine ---
def cosine(a: Optional[np.ndarray], b: Optional[np.ndarray]) -> float:
    """Cosine similarity; 0 for absent, empty, mismatched or zero vectors."""
    if a is None or b is None:
        return 0.0
    a = np.asarray(a, dtype=np.float64).reshape(-1)
    b = np.asarray(b, dtype=np.float64).reshape(-1)
    if a.size == 0 or a.size != b.size:
        return 0.0
    denom = np.sqrt(np.dot(a, a)) * np.sqrt(np.dot(b, b))
    if denom == 0:
        return 0.0
    return float(np.clip(np.dot(a, b) / denom, -1.0, 1.0))


def cosine_many(query: np.ndarray, matrix: np.ndarray) -> np.ndarray:
    """Cosine of one vector against every row of a [N, D] matrix."""
    query = np.asarray(query, dtype=np.float64).reshape(-1)
    matrix = np.asarray(matrix, dtype=np.float64)
    if matrix.size == 0:
        return np.zeros(0)
    q_norm = np.linalg.norm(query)
    row_norms = np.linalg.norm(matrix, axis=1)
    denom = q_norm * row_norms
    dots = matrix @ query
    with np.errstate(divide="ignore", invalid="ignore"):
        sims = np.where(denom > 0, dots / denom, 0.0)
    return np.clip(sims, -1.0, 1.0)


# --- Batch edge computation ---
def compute_lexical_edges(
    new_vector: SparseVector,
    candidates: Iterable[Tuple[str, SparseVector]],
    threshold: float = None,
) -> List[Edge]:
    """Candidates whose weighted Jaccard against `new_vector` clears the threshold."""
    threshold = Config.similarity.LEXICAL_THRESHOLD if threshold is None else threshold
    edges = []
    for idea_id, vector in candidates:
        score = weighted_jaccard(new_vector, vector)
        if score >= threshold:
            edges.append((idea_id, score))
    return edges


def compute_semantic_edges(
    new_embedding: Optional[np.ndarray],
    candidates: Iterable[Tuple[str, Optional[np.ndarray]]],
    threshold: float = None,
) -> List[Edge]:
    """
    Candidates whose embedding cosine against `new_embedding` clears the
    threshold. Candidates without a usable embedding contribute nothing.
    """
    threshold = Config.similarity.SEMANTIC_THRESHOLD if threshold is None else threshold
    if new_embedding is None:
        return []
    query = np.asarray(new_embedding, dtype=np.float64).reshape(-1)
    if query.size == 0:
        return []

    ids = []
    rows = []
    for idea_id, emb in candidates:
        if emb is None:
            continue
        emb = np.asarray(emb).reshape(-1)
        if emb.size != query.size:
            continue
        ids.append(idea_id)
        rows.append(emb)
    if not rows:
        return []

    # One matrix op over the whole pool instead of a Python loop per candidate
    sims = cosine_many(query, np.stack(rows, axis=0))
    return [(idea_id, float(s)) for idea_id, s in zip(ids, sims) if s >= threshold]


def merge_edge_scores(*edge_lists: Iterable[Edge]) -> Dict[str, float]:
    """Combine scored edges per target, keeping the strongest score."""
    merged: Dict[str, float] = {}
    for edges in edge_lists:
        for idea_id, score in edges:
            merged[idea_id] = max(merged.get(idea_id, 0.0), float(score))
    return merged
