"""
Detects themes with rising or fading momentum over a sliding time window.

    window_recent = ideas tagged T created in the last 7 days
    window_prior  = ideas tagged T created 7-14 days ago
    momentum(T)   = density(window_recent) / max(density(window_prior), 0.1)

where density is the mean pairwise embedding similarity of the window
(see graph.semantic_density). Emerging themes must also pass corpus-size
dependent gates and a 14-day cooldown; fading themes are judged on raw
counts.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import Config
from .graph import semantic_density
from .store import Idea, Theme, utcnow


@dataclass
class Signal:
    theme_name: str
    momentum: float


@dataclass(frozen=True)
class MomentumGates:
    min_frequency: int
    min_recent: int
    momentum_threshold: float


def gates_for_corpus(total_ideas: int) -> MomentumGates:
    """Coarser gates for larger corpora."""
    if total_ideas < 10:
        return MomentumGates(1, 1, 0.1)
    if total_ideas < 25:
        return MomentumGates(2, 1, 0.3)
    if total_ideas < 50:
        return MomentumGates(3, 2, 0.8)
    return MomentumGates(5, 3, 1.2)


def _windows(now: datetime) -> Tuple[datetime, datetime]:
    cfg = Config.momentum
    return now - timedelta(days=cfg.RECENT_DAYS), now - timedelta(days=cfg.PRIOR_DAYS)


def _bucket_by_tag(
    ideas: Iterable[Idea],
    now: datetime,
) -> Tuple[Dict[str, List[Idea]], Dict[str, List[Idea]]]:
    """Single pass: tag -> ideas in the recent window / the prior window."""
    recent_start, prior_start = _windows(now)
    recent: Dict[str, List[Idea]] = {}
    prior: Dict[str, List[Idea]] = {}
    for idea in ideas:
        if idea.created_at >= recent_start:
            bucket = recent
        elif idea.created_at >= prior_start:
            bucket = prior
        else:
            continue
        for tag in idea.theme_tags:
            bucket.setdefault(tag, []).append(idea)
    return recent, prior


def _in_cooldown(theme: Theme, now: datetime) -> bool:
    if theme.last_emerging_date is None:
        return False
    return theme.last_emerging_date >= now - timedelta(days=Config.momentum.COOLDOWN_DAYS)


def detect_emerging(
    themes: Iterable[Theme],
    ideas: Sequence[Idea],
    now: Optional[datetime] = None,
) -> List[Signal]:
    """Up to MAX_SIGNALS emerging themes, strongest momentum first."""
    now = now or utcnow()
    cfg = Config.momentum
    gates = gates_for_corpus(len(ideas))
    recent_by_tag, prior_by_tag = _bucket_by_tag(ideas, now)

    signals = []
    for theme in themes:
        # Noise gate: minimum corpus presence
        if theme.total_frequency < gates.min_frequency:
            continue
        if _in_cooldown(theme, now):
            continue

        theme_recent = recent_by_tag.get(theme.name, [])
        theme_prior = prior_by_tag.get(theme.name, [])
        if len(theme_recent) < gates.min_recent:
            continue

        density_recent = semantic_density([i.idea_id for i in theme_recent], theme_recent)
        density_prior = semantic_density([i.idea_id for i in theme_prior], theme_prior)
        momentum = density_recent / max(density_prior, cfg.DENSITY_FLOOR)

        if momentum < gates.momentum_threshold:
            continue
        signals.append(Signal(theme_name=theme.name, momentum=momentum))

    signals.sort(key=lambda s: s.momentum, reverse=True)
    return signals[:cfg.MAX_SIGNALS]


def detect_fading(
    themes: Iterable[Theme],
    ideas: Sequence[Idea],
    now: Optional[datetime] = None,
) -> List[Signal]:
    """
    Themes that were dominant but dropped by more than 70% week over week.
    `momentum` carries the drop ratio (recent / prior); most dramatic first.
    """
    now = now or utcnow()
    cfg = Config.momentum
    recent_by_tag, prior_by_tag = _bucket_by_tag(ideas, now)

    fading = []
    for theme in themes:
        if theme.total_frequency < cfg.FADING_MIN_TOTAL:
            continue
        count_recent = len(recent_by_tag.get(theme.name, []))
        count_prior = len(prior_by_tag.get(theme.name, []))
        if count_prior >= cfg.FADING_MIN_PRIOR and count_recent <= cfg.FADING_MAX_RECENT:
            fading.append(Signal(theme_name=theme.name, momentum=count_recent / count_prior))

    fading.sort(key=lambda s: s.momentum)
    return fading


def record_emerging(
    signals: Iterable[Signal],
    themes: Iterable[Theme],
    now: Optional[datetime] = None,
) -> List[Theme]:
    """
    Stamp the flagged themes with `now` so they stay quiet for the cooldown.
    Returns the updated themes; the caller persists them.
    """
    now = now or utcnow()
    flagged = {s.theme_name for s in signals}
    updated = []
    for theme in themes:
        if theme.name in flagged:
            theme.last_emerging_date = now
            updated.append(theme)
    return updated
