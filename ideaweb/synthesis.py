"""
Synthesis: finds ideas that are semantically close but not yet linked and
proposes how to combine them.
"""

from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence

import numpy as np

from .config import Config
from .graph import Adjacency
from .similarity import cosine
from .store import GraphEdge, Idea

SYNTHESIS_TAG = "Synthesis"


@dataclass
class SynthesisPair:
    idea_a: Idea
    idea_b: Idea
    similarity: float


@dataclass
class SynthesisResult:
    prompt: str
    insight: str
    confidence: float


def find_synthesis_pairs(
    ideas_newest_first: Sequence[Idea],
    adjacency: Adjacency,
    window: int = None,
    low: float = None,
    high: float = None,
    max_pairs: int = None,
) -> List[SynthesisPair]:
    """
    Unlinked pairs among the most recent ideas whose similarity sits in the
    (low, high) band: related enough to combine, distinct enough to matter.
    """
    cfg = Config.synthesis
    window = cfg.WINDOW if window is None else window
    low = cfg.LOW if low is None else low
    high = cfg.HIGH if high is None else high
    max_pairs = cfg.MAX_PAIRS if max_pairs is None else max_pairs

    pool = [i for i in ideas_newest_first[:window] if i.embedding is not None]
    pairs = []
    for x in range(len(pool)):
        a = pool[x]
        linked = adjacency.get(a.idea_id, set())
        for y in range(x + 1, len(pool)):
            b = pool[y]
            if b.idea_id in linked:
                continue
            sim = cosine(a.embedding, b.embedding)
            if low < sim < high:
                pairs.append(SynthesisPair(idea_a=a, idea_b=b, similarity=sim))

    pairs.sort(key=lambda p: p.similarity, reverse=True)
    return pairs[:max_pairs]


def _shared(a: Sequence[str], b: Sequence[str]) -> List[str]:
    lowered = {t.lower() for t in b}
    return [t for t in a if t.lower() in lowered]


def synthesize(idea_a: Idea, idea_b: Idea) -> SynthesisResult:
    sim = cosine(idea_a.embedding, idea_b.embedding)

    if sim > 0.85:
        return SynthesisResult(
            prompt="Conceptual Parity Detected",
            insight="These ideas are nearly the same thought. Merge them into one stronger statement.",
            confidence=sim,
        )

    themes = _shared(idea_a.theme_tags, idea_b.theme_tags)
    if themes:
        return SynthesisResult(
            prompt=f"Deepen your '{themes[0]}' core.",
            insight=f"Both ideas sit inside '{themes[0]}'. What does combining them reveal about it?",
            confidence=0.8,
        )

    keywords = _shared(idea_a.keywords, idea_b.keywords)
    if keywords:
        return SynthesisResult(
            prompt=f"Bridge via '{keywords[0]}'.",
            insight=f"'{keywords[0]}' appears in both. Use it as the hinge between the two ideas.",
            confidence=0.7,
        )

    return SynthesisResult(
        prompt="Provoke a Synthesis",
        insight="No obvious overlap. Force a connection: how could one idea solve the other?",
        confidence=sim,
    )


def synthesis_content(result: SynthesisResult) -> str:
    return f"✨ BRAIN SYNTHESIS: {result.prompt}\n\n{result.insight}"


def solidify_synthesis(
    store,
    idea_a: Idea,
    idea_b: Idea,
    result: SynthesisResult,
    embed: Optional[Callable[[str], Optional[np.ndarray]]] = None,
) -> Idea:
    """Store the synthesis as a new idea linked to both parents."""
    idea = Idea.create(synthesis_content(result))
    idea.theme_tags = [SYNTHESIS_TAG]
    if embed is not None:
        idea.embedding = embed(idea.content)

    with store.transaction():
        store.insert_idea(idea)
        for parent in (idea_a, idea_b):
            store.add_edge(GraphEdge(
                source_id=idea.idea_id,
                target_id=parent.idea_id,
                score=float(result.confidence),
            ))
    return idea
