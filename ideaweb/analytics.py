"""
One-shot recomputation of every graph analytic from a store snapshot.

Typical use is as a GraphSignal subscriber:

    signal.subscribe(lambda: build_analytics(store).configure_layout(layout))
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from .graph import (
    Adjacency,
    CognitiveCore,
    IsolatedPair,
    build_adjacency,
    degree_centrality,
    dominant_tag,
    find_clusters,
    find_cognitive_core,
    find_isolated_pairs,
)
from .intents import canonical_intent
from .momentum import Signal, detect_emerging, detect_fading, record_emerging
from .store import Idea, IdeaStatus, Theme, utcnow
from .synthesis import SynthesisPair, find_synthesis_pairs


@dataclass
class AnalyticsReport:
    ideas: List[Idea]
    adjacency: Adjacency
    centrality: Dict[str, float]
    clusters: List[List[str]]
    cognitive_core: Optional[CognitiveCore]
    core_name: Optional[str]
    emerging: List[Signal]
    fading: List[Signal]
    isolated_pairs: List[IsolatedPair]
    synthesis_pairs: List[SynthesisPair]
    intent_map: Dict[str, List[str]] = field(default_factory=dict)
    generated_at: Optional[datetime] = None

    @property
    def core_size(self) -> int:
        return len(self.cognitive_core.cluster_ids) if self.cognitive_core else 0

    @property
    def max_momentum(self) -> float:
        return max((s.momentum for s in self.emerging), default=0.0)

    @property
    def newest_direction(self) -> Optional[str]:
        return self.emerging[0].theme_name if self.emerging else None

    def configure_layout(self, layout):
        layout.configure(
            self.ideas,
            self.adjacency,
            self.centrality,
            self.cognitive_core,
            self.clusters,
            intent_map=self.intent_map,
        )


def _intent_map(ideas: List[Idea]) -> Dict[str, List[str]]:
    result = {}
    for idea in ideas:
        intents = [canonical_intent(t) for t in idea.theme_tags]
        intents = [t for t in intents if t is not None]
        if intents:
            result[idea.idea_id] = intents
    return result


def build_analytics(store, now: Optional[datetime] = None) -> AnalyticsReport:
    now = now or utcnow()
    ideas = [i for i in store.all_ideas() if i.status != IdeaStatus.ARCHIVED]
    ids = [i.idea_id for i in ideas]

    adjacency = build_adjacency(store.all_edges(), allowed_ids=set(ids))
    centrality = degree_centrality(ids, adjacency)
    clusters = find_clusters(ids, adjacency)
    core = find_cognitive_core(clusters, ideas)
    core_name = dominant_tag(core.cluster_ids, ideas) if core else None

    themes = store.all_themes()
    newest_first = list(reversed(ideas))

    return AnalyticsReport(
        ideas=ideas,
        adjacency=adjacency,
        centrality=centrality,
        clusters=clusters,
        cognitive_core=core,
        core_name=core_name,
        emerging=detect_emerging(themes, ideas, now=now),
        fading=detect_fading(themes, ideas, now=now),
        isolated_pairs=find_isolated_pairs(clusters, adjacency),
        synthesis_pairs=find_synthesis_pairs(newest_first, adjacency),
        intent_map=_intent_map(ideas),
        generated_at=now,
    )


def acknowledge_emerging(store, report: AnalyticsReport, now: Optional[datetime] = None) -> List[Theme]:
    """Start the cooldown for every theme the report flagged as emerging."""
    updated = record_emerging(report.emerging, store.all_themes(), now=now)
    with store.transaction():
        for theme in updated:
            store.upsert_theme(theme)
    return updated
