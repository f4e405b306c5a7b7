"""
ideaweb.graph
=============

Pure graph algorithms for the idea web: adjacency construction, cluster
detection, semantic density, cognitive core, degree centrality and
"missed connection" (isolated cluster pair) detection.

Nothing here touches the store. Every function takes plain ids, edges and
embeddings, so the analytics can run on any read-only snapshot.
"""

import math
from collections import Counter, deque
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union

import numpy as np

from .config import Config
from .similarity import cosine
from .store import GraphEdge, Idea

Adjacency = Dict[str, Set[str]]


# --- Adjacency construction ---
def build_adjacency(
    edges: Iterable[GraphEdge],
    allowed_ids: Optional[Set[str]] = None,
) -> Adjacency:
    """
    Bidirectional, set-based adjacency from persisted edges.

    Duplicate edges collapse naturally; self-loops are dropped, and so are
    edges touching ids outside `allowed_ids` when it is given.
    """
    adj: Adjacency = {}
    for e in edges:
        if e.source_id == e.target_id:
            continue
        if allowed_ids is not None and (e.source_id not in allowed_ids or e.target_id not in allowed_ids):
            continue
        adj.setdefault(e.source_id, set()).add(e.target_id)
        adj.setdefault(e.target_id, set()).add(e.source_id)
    return adj


# --- Connected components ---
def find_clusters(node_ids: Sequence[str], adjacency: Adjacency) -> List[List[str]]:
    """Connected components with at least two members, found by BFS."""
    visited: Set[str] = set()
    clusters: List[List[str]] = []

    for node_id in node_ids:
        if node_id in visited:
            continue
        component = []
        queue = deque([node_id])
        visited.add(node_id)
        while queue:
            current = queue.popleft()
            component.append(current)
            for neighbor in adjacency.get(current, ()):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)

        if len(component) >= 2:
            clusters.append(component)

    return clusters


# --- Density ---
EmbeddingSource = Union[Mapping[str, Optional[np.ndarray]], Iterable[Idea]]


def _embedding_lookup(source: EmbeddingSource) -> Mapping[str, Optional[np.ndarray]]:
    if isinstance(source, Mapping):
        return source
    return {idea.idea_id: idea.embedding for idea in source}


def semantic_density(cluster_ids: Sequence[str], embeddings: EmbeddingSource) -> float:
    """
    Mean pairwise cosine similarity inside a cluster.

    Only members with an embedding count, and only the first
    DENSITY_SAMPLE_CAP of those, which bounds the pairwise work.
    Returns 0 when fewer than two members have embeddings.
    """
    if len(cluster_ids) < 2:
        return 0.0
    lookup = _embedding_lookup(embeddings)
    cap = Config.graph.DENSITY_SAMPLE_CAP

    vecs = []
    seen = set()
    for idea_id in cluster_ids:
        if idea_id in seen:
            continue
        seen.add(idea_id)
        emb = lookup.get(idea_id)
        if emb is None:
            continue
        vecs.append(emb)
        if len(vecs) >= cap:
            break

    if len(vecs) < 2:
        return 0.0

    total = 0.0
    pairs = 0
    for i in range(len(vecs)):
        for j in range(i + 1, len(vecs)):
            total += cosine(vecs[i], vecs[j])
            pairs += 1
    return total / pairs if pairs else 0.0


# --- Cognitive Core ---
@dataclass
class CognitiveCore:
    """The densest, most substantial cluster: score = density x ln(size)."""
    cluster_ids: List[str]
    density: float
    score: float


def cluster_score(density: float, size: int) -> float:
    return density * math.log(size) if size > 0 else 0.0


def find_cognitive_core(
    clusters: Sequence[Sequence[str]],
    ideas: EmbeddingSource,
) -> Optional[CognitiveCore]:
    if not clusters:
        return None
    lookup = _embedding_lookup(ideas)

    best: Optional[CognitiveCore] = None
    for cluster in clusters:
        d = semantic_density(cluster, lookup)
        score = cluster_score(d, len(cluster))
        # Strict comparison keeps the first cluster on ties
        if best is None or score > best.score:
            best = CognitiveCore(cluster_ids=list(cluster), density=d, score=score)
    return best


def dominant_tag(cluster_ids: Iterable[str], ideas: Iterable[Idea]) -> Optional[str]:
    """Most frequent theme tag among a cluster's members."""
    members = set(cluster_ids)
    counts = Counter()
    for idea in ideas:
        if idea.idea_id in members:
            counts.update(idea.theme_tags)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


# --- Degree centrality ---
def degree_centrality(node_ids: Sequence[str], adjacency: Adjacency) -> Dict[str, float]:
    n = len(node_ids)
    if n <= 1:
        return {}
    max_degree = float(n - 1)
    return {
        node_id: min(len(adjacency.get(node_id, ())) / max_degree, 1.0)
        for node_id in node_ids
    }


# --- Missed connections ---
@dataclass
class IsolatedPair:
    """Two large clusters with no edge between them."""
    cluster_a: List[str]
    cluster_b: List[str]
    label_a: str
    label_b: str


def find_isolated_pairs(
    clusters: Sequence[Sequence[str]],
    adjacency: Adjacency,
    top_n: int = None,
) -> List[IsolatedPair]:
    if len(clusters) < 2:
        return []
    top_n = Config.graph.ISOLATED_TOP_CLUSTERS if top_n is None else top_n
    # Stable sort: equal-sized clusters keep discovery order
    top = sorted(clusters, key=len, reverse=True)[:top_n]

    pairs = []
    for i in range(len(top)):
        for j in range(i + 1, len(top)):
            set_b = set(top[j])
            connected = any(adjacency.get(node, set()) & set_b for node in top[i])
            if not connected:
                pairs.append(IsolatedPair(
                    cluster_a=list(top[i]),
                    cluster_b=list(top[j]),
                    label_a=f"Cluster {i + 1}",
                    label_b=f"Cluster {j + 1}",
                ))
    return pairs
