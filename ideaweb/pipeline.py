"""
Ingestion pipeline: record the raw idea first, enrich it in the background.

Enrichment of one idea:
  tokens + embedding -> document frequencies from Theme counters -> TF-IDF
  -> intents + top keywords as tags -> theme counters -> similarity edges
  against the recent candidate pool -> "graph updated" signal.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import Config
from .intents import IntentClassifier, Obsession, detect_obsessions
from .similarity import (
    compute_lexical_edges,
    compute_semantic_edges,
    merge_edge_scores,
    tfidf_vector,
)
from .store import GraphEdge, Idea, Theme
from .text_utils import normalize_tag

logger = logging.getLogger(__name__)


def log_event(event_type: str, message: str, details: Dict = None):
    """Emit a pipeline milestone."""
    logger.info(f"[{event_type}] {message}")
    if details and Config.core.DEBUG:
        logger.debug(f"[{event_type}] {details}")


class GraphSignal:
    """Payload-free "graph updated" notification."""

    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: List[Callable[[], None]] = []

    def subscribe(self, callback: Callable[[], None]) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self):
        with self._lock:
            subscribers = list(self._subscribers)
        log_event("SIGNAL", f"graph updated ({len(subscribers)} subscribers)")
        for callback in subscribers:
            try:
                callback()
            except Exception:
                logger.exception("Graph signal subscriber failed")


@dataclass
class ProcessingResult:
    idea_id: str
    keywords: List[str]
    tags: List[str]
    edges: List[Tuple[str, float]] = field(default_factory=list)


@dataclass
class _Analysis:
    keywords: List[str]
    vector: Dict[str, float]
    embedding: Optional[np.ndarray]
    intents: List[str]
    tags: List[str]
    edges: Dict[str, float]


@dataclass
class ReprocessReport:
    processed: int = 0
    failed: int = 0
    edges_created: int = 0


def select_tags(intents: Sequence[str], vector: Dict[str, float], keywords: Sequence[str]) -> List[str]:
    """
    Intents first, latest-detected leading, then the strongest keywords;
    deduplicated ignoring case, canonically cased and capped.
    """
    cfg = Config.pipeline
    order = {kw: pos for pos, kw in enumerate(keywords)}
    ranked = sorted(vector, key=lambda kw: (-vector[kw], order.get(kw, len(order))))

    tags = []
    seen = set()
    for raw in list(reversed(intents)) + ranked[:cfg.TOP_KEYWORD_TAGS]:
        tag = normalize_tag(raw)
        if not tag or tag.lower() in seen:
            continue
        seen.add(tag.lower())
        tags.append(tag)
    return tags[:cfg.MAX_TAGS]


class IngestionPipeline:
    def __init__(
        self,
        store,
        processor,
        intents: Optional[IntentClassifier] = None,
        signal: Optional[GraphSignal] = None,
        max_workers: int = None,
    ):
        self.store = store
        self.processor = processor
        self.intents = intents
        self.signal = signal or GraphSignal()
        self.last_obsessions: List[Obsession] = []
        self._reprocess_lock = threading.Lock()
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or Config.pipeline.MAX_WORKERS,
            thread_name_prefix="ideaweb-pipeline",
        )

    # --- Capture ---
    def capture(self, content: str, has_reminder: bool = False) -> Tuple[Idea, Future]:
        """Persist the raw idea, then schedule enrichment."""
        idea = Idea.create(content, has_reminder=has_reminder)
        self.store.insert_idea(idea)
        log_event("CAPTURE", f"{idea.idea_id[:8]} {content[:40]!r}")
        future = self._executor.submit(self.process_idea, idea.idea_id)
        return idea, future

    def process_idea(self, idea_id: str) -> Optional[ProcessingResult]:
        """Enrich one idea against the current corpus. None if it no longer exists."""
        try:
            idea = self.store.get_idea(idea_id)
            if idea is None:
                logger.info(f"Idea {idea_id} vanished before enrichment")
                return None
            candidates = self.store.recent_ideas(Config.similarity.CANDIDATE_POOL, exclude_id=idea_id)
            total_documents = self.store.count_ideas() + 1
            result = self._enrich(idea, candidates, total_documents)
        except Exception:
            logger.exception(f"Enrichment failed for idea {idea_id}")
            raise
        if result is None:
            return None

        self._refresh_obsessions()
        self.signal.emit()
        return result

    def _enrich(
        self,
        idea: Idea,
        candidates: Sequence[Idea],
        total_documents: int,
    ) -> Optional[ProcessingResult]:
        analysis = self._analyze(idea, candidates, total_documents)
        return self._commit(idea.idea_id, analysis)

    def _analyze(self, idea: Idea, candidates: Sequence[Idea], total_documents: int) -> _Analysis:
        """Model calls and scoring; runs outside any store transaction."""
        keywords = self.processor.tokenize(idea.content)
        embedding = self.processor.embed(idea.content)

        doc_freq = {}
        for kw in keywords:
            theme = self.store.get_theme(normalize_tag(kw))
            doc_freq[kw] = theme.total_frequency if theme else 0
        vector = tfidf_vector(keywords, doc_freq, total_documents)

        intents = self.intents.detect_intents(embedding) if self.intents else []
        tags = select_tags(intents, vector, keywords)

        lexical = compute_lexical_edges(vector, [(c.idea_id, c.vector) for c in candidates])
        semantic = compute_semantic_edges(embedding, [(c.idea_id, c.embedding) for c in candidates])
        return _Analysis(
            keywords=list(keywords),
            vector=vector,
            embedding=embedding,
            intents=intents,
            tags=tags,
            edges=merge_edge_scores(lexical, semantic),
        )

    def _commit(self, idea_id: str, analysis: _Analysis) -> Optional[ProcessingResult]:
        """Write one idea's derived fields, theme counters and edges as a unit."""
        with self.store.transaction():
            current = self.store.get_idea(idea_id)
            if current is None:
                logger.info(f"Idea {idea_id} deleted during enrichment; abandoning")
                return None
            current.keywords = analysis.keywords
            current.vector = analysis.vector
            current.embedding = analysis.embedding
            current.theme_tags = analysis.tags
            self.store.update_idea(current)

            for tag in analysis.tags:
                theme = self.store.get_theme(tag) or Theme(name=tag)
                theme.total_frequency += 1
                theme.weekly_frequency += 1
                self.store.upsert_theme(theme)

            # Candidates may have been deleted since the pool was read
            edges = {
                target_id: score for target_id, score in analysis.edges.items()
                if self.store.get_idea(target_id) is not None
            }
            for target_id, score in edges.items():
                self.store.add_edge(GraphEdge(source_id=idea_id, target_id=target_id, score=score))

        log_event(
            "ENRICH",
            f"{idea_id[:8]} tags={analysis.tags} edges={len(edges)}",
            {"keywords": analysis.keywords, "intents": analysis.intents},
        )
        return ProcessingResult(
            idea_id=idea_id,
            keywords=list(analysis.keywords),
            tags=analysis.tags,
            edges=sorted(edges.items(), key=lambda e: e[1], reverse=True),
        )

    def _refresh_obsessions(self):
        recent = self.store.recent_ideas(Config.intents.OBSESSION_WINDOW)
        self.last_obsessions = detect_obsessions(recent)

    # --- Full reprocess ---
    def reprocess_all(self, batch_size: int = None) -> ReprocessReport:
        """
        Clear every edge and theme, then replay enrichment in creation order.

        Each idea only sees ideas created before it, exactly as it did when
        first captured, so a pair is edged once and repeated runs agree.
        """
        batch_size = batch_size or Config.pipeline.REPROCESS_BATCH_SIZE
        report = ReprocessReport()

        with self._reprocess_lock:
            with self.store.transaction():
                self.store.clear_edges()
                self.store.clear_themes()
            ideas = self.store.all_ideas()
            log_event("REPROCESS", f"rebuilding {len(ideas)} ideas in batches of {batch_size}")

            # Writes commit per idea, so captures interleave between units
            for start in range(0, len(ideas), batch_size):
                batch = ideas[start:start + batch_size]
                for offset, idea in enumerate(batch):
                    self._replay(idea, start + offset, report)
                log_event("REPROCESS", f"batch done: {min(start + batch_size, len(ideas))}/{len(ideas)}")

        self._refresh_obsessions()
        log_event(
            "REPROCESS",
            f"processed={report.processed} failed={report.failed} edges={report.edges_created}",
        )
        self.signal.emit()
        return report

    def _replay(self, idea: Idea, position: int, report: ReprocessReport):
        try:
            candidates = self.store.recent_ideas(
                Config.similarity.CANDIDATE_POOL,
                exclude_id=idea.idea_id,
                before=idea.created_at,
            )
            result = self._enrich(idea, candidates, position + 2)
        except Exception:
            logger.exception(f"Reprocess failed for idea {idea.idea_id}")
            report.failed += 1
            self._reset_derived(idea.idea_id)
            return
        if result is not None:
            report.processed += 1
            report.edges_created += len(result.edges)

    def _reset_derived(self, idea_id: str):
        """Leave a failed idea untagged until the next reprocess."""
        idea = self.store.get_idea(idea_id)
        if idea is None:
            return
        idea.keywords = []
        idea.theme_tags = []
        idea.vector = {}
        self.store.update_idea(idea)

    def reprocess_async(self, batch_size: int = None) -> Future:
        return self._executor.submit(self.reprocess_all, batch_size)

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
