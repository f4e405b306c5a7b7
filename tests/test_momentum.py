"""
Tests for emerging/fading theme detection.
"""
from datetime import timedelta

import numpy as np
import pytest

from ideaweb.momentum import (
    Signal,
    detect_emerging,
    detect_fading,
    gates_for_corpus,
    record_emerging,
)
from ideaweb.store import Theme, utcnow

from conftest import make_idea

DIM = 32


def one_hot(i):
    v = np.zeros(DIM, dtype=np.float32)
    v[i % DIM] = 1.0
    return v


def burst_corpus(now, tag="Research", steady=20, burst=5):
    """`steady` ideas one per day with unrelated embeddings, then a tight burst."""
    ideas = [
        make_idea(f"steady {i}", days_ago=i + 0.5, tags=[tag], embedding=one_hot(i), now=now)
        for i in range(steady)
    ]
    ideas += [
        make_idea(f"burst {i}", days_ago=0.2 + 0.4 * i, tags=[tag], embedding=one_hot(DIM - 1), now=now)
        for i in range(burst)
    ]
    return sorted(ideas, key=lambda i: i.created_at)


@pytest.fixture
def now():
    return utcnow()


class TestGates:
    @pytest.mark.parametrize("size, expected", [
        (0, (1, 1, 0.1)),
        (9, (1, 1, 0.1)),
        (10, (2, 1, 0.3)),
        (24, (2, 1, 0.3)),
        (25, (3, 2, 0.8)),
        (49, (3, 2, 0.8)),
        (50, (5, 3, 1.2)),
        (5000, (5, 3, 1.2)),
    ])
    def test_table(self, size, expected):
        g = gates_for_corpus(size)
        assert (g.min_frequency, g.min_recent, g.momentum_threshold) == expected


class TestEmerging:
    def test_research_burst(self, now):
        """20 steady ideas plus a 5-idea burst in the last two days."""
        ideas = burst_corpus(now)
        themes = [Theme("Research", total_frequency=25)]
        signals = detect_emerging(themes, ideas, now=now)
        research = [s for s in signals if s.theme_name == "Research"]
        assert research
        # recent: 7 steady + 5 burst -> 10 identical pairs of 66; prior density floored
        assert research[0].momentum == pytest.approx((10 / 66) / 0.1, rel=1e-4)
        assert research[0].momentum >= 1.2

    def test_low_frequency_blocked_in_large_corpus(self, now):
        ideas = burst_corpus(now, steady=45, burst=5)
        assert len(ideas) >= 50
        themes = [Theme("Research", total_frequency=4)]
        assert detect_emerging(themes, ideas, now=now) == []

    def test_too_few_recent_ideas(self, now):
        ideas = [make_idea(days_ago=d, tags=["Solo"], embedding=one_hot(0), now=now) for d in (1, 20, 21)]
        ideas += [make_idea(days_ago=30, tags=["Other"], now=now) for _ in range(25)]
        themes = [Theme("Solo", total_frequency=3)]
        # 28 ideas -> min_recent = 2
        assert detect_emerging(themes, ideas, now=now) == []

    @pytest.mark.parametrize("days_since_flag, expected", [(1, False), (13, False), (15, True)])
    def test_cooldown(self, now, days_since_flag, expected):
        ideas = burst_corpus(now)
        themes = [Theme("Research", total_frequency=25, last_emerging_date=now - timedelta(days=days_since_flag))]
        found = any(s.theme_name == "Research" for s in detect_emerging(themes, ideas, now=now))
        assert found is expected

    def test_flagged_theme_stays_quiet_until_cooldown_ends(self, now):
        ideas = burst_corpus(now)
        themes = [Theme("Research", total_frequency=25)]
        signals = detect_emerging(themes, ideas, now=now)
        updated = record_emerging(signals, themes, now=now)
        assert [t.name for t in updated] == ["Research"]
        assert themes[0].last_emerging_date == now

        assert detect_emerging(themes, ideas, now=now) == []
        later = now + timedelta(days=13, hours=23)
        shifted = burst_corpus(later)
        assert detect_emerging(themes, shifted, now=later) == []

    def test_top_three_by_momentum(self, now):
        ideas = []
        themes = []
        for k in range(5):
            tag = f"T{k}"
            themes.append(Theme(tag, total_frequency=10))
            # k+2 identical recent ideas and one unrelated one
            for j in range(k + 2):
                ideas.append(make_idea(days_ago=1, tags=[tag], embedding=one_hot(k), now=now))
            ideas.append(make_idea(days_ago=1, tags=[tag], embedding=one_hot(10 + k), now=now))
        signals = detect_emerging(themes, ideas, now=now)
        assert [s.theme_name for s in signals] == ["T4", "T3", "T2"]
        assert signals[0].momentum > signals[1].momentum > signals[2].momentum


class TestFading:
    def _corpus(self, now, prior, recent, tag="Gym"):
        ideas = [make_idea(days_ago=10, tags=[tag], now=now) for _ in range(prior)]
        ideas += [make_idea(days_ago=2, tags=[tag], now=now) for _ in range(recent)]
        return ideas

    def test_dropped_theme_fades(self, now):
        ideas = self._corpus(now, prior=5, recent=1)
        fading = detect_fading([Theme("Gym", total_frequency=12)], ideas, now=now)
        assert fading == [Signal("Gym", pytest.approx(0.2))]

    @pytest.mark.parametrize("total, prior, recent", [
        (9, 5, 0),   # never dominant
        (12, 3, 0),  # not enough prior activity
        (12, 5, 2),  # still active
    ])
    def test_not_fading(self, now, total, prior, recent):
        ideas = self._corpus(now, prior=prior, recent=recent)
        assert detect_fading([Theme("Gym", total_frequency=total)], ideas, now=now) == []

    def test_most_dramatic_first(self, now):
        ideas = self._corpus(now, prior=4, recent=1, tag="A") + self._corpus(now, prior=6, recent=0, tag="B")
        themes = [Theme("A", total_frequency=10), Theme("B", total_frequency=10)]
        assert [s.theme_name for s in detect_fading(themes, ideas, now=now)] == ["B", "A"]
