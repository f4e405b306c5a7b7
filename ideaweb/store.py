# ideaweb/store.py
import json
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Iterator

import numpy as np


class StoreError(RuntimeError):
    """Raised when the store cannot satisfy a read or write."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# --- Vector codec ---
def encode_vector(vector: Dict[str, float]) -> str:
    """Serialize a sparse keyword -> weight map."""
    return json.dumps({k: float(v) for k, v in vector.items()}, sort_keys=True)


def decode_vector(data: Optional[str]) -> Dict[str, float]:
    if not data or not data.strip():
        return {}
    raw = json.loads(data)
    return {str(k): float(v) for k, v in raw.items()}


# --- Data models ---
class IdeaStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    ARCHIVED = "archived"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass
class Idea:
    idea_id: str
    content: str
    created_at: datetime
    keywords: List[str] = field(default_factory=list)
    theme_tags: List[str] = field(default_factory=list)
    status: IdeaStatus = IdeaStatus.ACTIVE
    vector: Dict[str, float] = field(default_factory=dict)  # keyword -> TF-IDF weight
    embedding: Optional[np.ndarray] = None
    has_reminder: bool = False

    @classmethod
    def create(cls, content: str, created_at: Optional[datetime] = None, has_reminder: bool = False) -> "Idea":
        return cls(
            idea_id=uuid.uuid4().hex,
            content=content,
            created_at=created_at or utcnow(),
            has_reminder=has_reminder,
        )

    def encoded_vector(self) -> str:
        return encode_vector(self.vector)

    def set_encoded_vector(self, data: Optional[str]):
        self.vector = decode_vector(data)

    def copy(self) -> "Idea":
        return replace(
            self,
            keywords=list(self.keywords),
            theme_tags=list(self.theme_tags),
            vector=dict(self.vector),
            embedding=None if self.embedding is None else self.embedding.copy(),
        )


@dataclass
class Theme:
    name: str
    total_frequency: int = 0
    weekly_frequency: int = 0
    last_emerging_date: Optional[datetime] = None

    def copy(self) -> "Theme":
        return replace(self)


@dataclass
class GraphEdge:
    source_id: str
    target_id: str
    score: float
    edge_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    def copy(self) -> "GraphEdge":
        return replace(self)


# --- In-memory store ---
class MemoryStore:
    """
    Thread-safe in-memory idea store.

    Holds ideas, themes and edges. Everything returned is a snapshot, so
    callers persist changes explicitly with update_idea / upsert_theme.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._ideas: Dict[str, Idea] = {}
        self._themes: Dict[str, Theme] = {}
        self._edges: Dict[str, GraphEdge] = {}

    @contextmanager
    def transaction(self) -> Iterator["MemoryStore"]:
        """Group writes; on error the store is restored to its state at entry."""
        with self._lock:
            # Stored entities are replaced, never mutated, so shallow copies suffice
            saved = (dict(self._ideas), dict(self._themes), dict(self._edges))
            try:
                yield self
            except BaseException:
                self._ideas, self._themes, self._edges = saved
                raise

    # --- Idea operations ---
    def insert_idea(self, idea: Idea) -> Idea:
        with self._lock:
            self._ideas[idea.idea_id] = idea.copy()
        return idea

    def get_idea(self, idea_id: str) -> Optional[Idea]:
        with self._lock:
            idea = self._ideas.get(idea_id)
            return idea.copy() if idea else None

    def update_idea(self, idea: Idea):
        with self._lock:
            if idea.idea_id not in self._ideas:
                raise StoreError(f"Unknown idea: {idea.idea_id}")
            self._ideas[idea.idea_id] = idea.copy()

    def delete_idea(self, idea_id: str) -> bool:
        """Delete an idea together with every edge touching it."""
        with self._lock:
            if self._ideas.pop(idea_id, None) is None:
                return False
            for edge_id, e in list(self._edges.items()):
                if idea_id in (e.source_id, e.target_id):
                    del self._edges[edge_id]
            return True

    def all_ideas(self) -> List[Idea]:
        """All ideas in ascending creation order."""
        with self._lock:
            ideas = sorted(self._ideas.values(), key=lambda i: i.created_at)
            return [i.copy() for i in ideas]

    def count_ideas(self) -> int:
        with self._lock:
            return len(self._ideas)

    def recent_ideas(
        self,
        limit: int,
        exclude_id: Optional[str] = None,
        before: Optional[datetime] = None,
    ) -> List[Idea]:
        """Newest-first slice of at most `limit` ideas."""
        with self._lock:
            pool = [
                i for i in self._ideas.values()
                if i.idea_id != exclude_id and (before is None or i.created_at < before)
            ]
            pool.sort(key=lambda i: i.created_at, reverse=True)
            return [i.copy() for i in pool[:limit]]

    def ideas_with_tag(self, tag: str) -> List[Idea]:
        needle = tag.lower()
        return [i for i in self.all_ideas() if any(t.lower() == needle for t in i.theme_tags)]

    def ideas_created_between(self, start: datetime, end: datetime) -> List[Idea]:
        return [i for i in self.all_ideas() if start <= i.created_at < end]

    # --- Theme operations ---
    def get_theme(self, name: str) -> Optional[Theme]:
        with self._lock:
            theme = self._themes.get(name)
            return theme.copy() if theme else None

    def all_themes(self) -> List[Theme]:
        with self._lock:
            return [t.copy() for t in self._themes.values()]

    def upsert_theme(self, theme: Theme):
        with self._lock:
            self._themes[theme.name] = theme.copy()

    def clear_themes(self):
        with self._lock:
            self._themes.clear()

    # --- Edge operations ---
    def add_edge(self, edge: GraphEdge):
        with self._lock:
            self._edges[edge.edge_id] = edge.copy()

    def all_edges(self) -> List[GraphEdge]:
        with self._lock:
            return [e.copy() for e in self._edges.values()]

    def edges_for(self, idea_id: str) -> List[GraphEdge]:
        with self._lock:
            return [e.copy() for e in self._edges.values() if idea_id in (e.source_id, e.target_id)]

    def clear_edges(self):
        with self._lock:
            self._edges.clear()

    def close(self):
        pass
