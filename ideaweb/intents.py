"""
Elevates raw ideas into coarse semantic categories ("intents").

Each concept is defined by a seed phrase; an idea whose embedding lands
close enough to a concept's embedding gets that concept's tag, so
"eggs + milk" is understood as Grocery.
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from .config import Config
from .similarity import cosine
from .store import Idea

logger = logging.getLogger(__name__)

EmbedFn = Callable[[str], Optional[np.ndarray]]


class Concept(Enum):
    GROCERIES = "Milk, eggs, bread, grocery list, shopping, food, produce, meat, supermarket, supplies, potatoes, chicken"
    WORK = "Work, project, meeting, task, professional, office, deadline, business, colleague"
    HEALTH = "Health, fitness, exercise, medical, doctor, wellbeing, gym, workout, symptoms"
    FINANCE = "Finance, money, budget, banking, expense, payment, tax, investment"
    CREATIVE = "Creative, idea, inspiration, art, writing, design, project, music"
    HOME = "Home, family, chore, household, renovation, lifestyle, garden"
    TECH = "Technology, coding, software, gadgets, computer, programming, ai"
    PLANS = "Plans, schedule, travel, calendar, event, meeting, appointment, trip"
    LEARNING = "Learning, study, research, book, course, knowledge, student"

    @property
    def tag(self) -> str:
        return _TAGS[self.name]


_TAGS = {
    "GROCERIES": "Grocery",
    "WORK": "Work",
    "HEALTH": "Health",
    "FINANCE": "Finance",
    "CREATIVE": "Creative",
    "HOME": "Home",
    "TECH": "Tech",
    "PLANS": "Plans",
    "LEARNING": "Learning",
}

ALL_INTENT_TAGS: List[str] = [c.tag for c in Concept]
_INTENT_BY_LOWER = {t.lower(): t for t in ALL_INTENT_TAGS}


def canonical_intent(tag: str) -> Optional[str]:
    """The official intent tag matching `tag` case-insensitively, if any."""
    return _INTENT_BY_LOWER.get(tag.lower())


class IntentClassifier:
    """
    Matches idea embeddings against cached concept embeddings.

    Concept embeddings are generated once, on first use, and reused for the
    classifier's lifetime. Concepts whose seed phrase cannot be embedded are
    left out.
    """

    def __init__(self, embed: EmbedFn, threshold: float = None):
        self.embed = embed
        self.threshold = Config.intents.ELEVATION_THRESHOLD if threshold is None else threshold
        self._lock = threading.Lock()
        self._concepts: Optional[List[Tuple[str, np.ndarray]]] = None

    @property
    def concept_embeddings(self) -> List[Tuple[str, np.ndarray]]:
        if self._concepts is None:
            with self._lock:
                if self._concepts is None:
                    cached = []
                    for concept in Concept:
                        emb = self.embed(concept.value)
                        if emb is None:
                            logger.warning(f"No embedding for concept {concept.tag}; skipping")
                            continue
                        cached.append((concept.tag, emb))
                    self._concepts = cached
        return self._concepts

    def detect_intents(self, embedding: Optional[np.ndarray]) -> List[str]:
        """Every intent tag whose concept clears the threshold, in concept order."""
        if embedding is None:
            return []
        return [
            tag for tag, concept_emb in self.concept_embeddings
            if cosine(embedding, concept_emb) >= self.threshold
        ]


# --- Obsessions ---
@dataclass
class Obsession:
    """An intent the user keeps cycling on in recent ideas."""
    intent: str
    count: int
    idea_ids: List[str] = field(default_factory=list)


def detect_obsessions(
    ideas_newest_first: Sequence[Idea],
    window: int = None,
    min_count: int = None,
) -> List[Obsession]:
    """Intent tags recurring at least `min_count` times in the last `window` ideas."""
    window = Config.intents.OBSESSION_WINDOW if window is None else window
    min_count = Config.intents.OBSESSION_MIN_COUNT if min_count is None else min_count

    hits = {}
    for idea in ideas_newest_first[:window]:
        for tag in idea.theme_tags:
            intent = canonical_intent(tag)
            if intent is not None:
                hits.setdefault(intent, []).append(idea.idea_id)

    found = [
        Obsession(intent=intent, count=len(ids), idea_ids=ids)
        for intent, ids in hits.items()
        if len(ids) >= min_count
    ]
    found.sort(key=lambda o: o.count, reverse=True)
    return found
