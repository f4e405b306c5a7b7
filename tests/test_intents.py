"""
Tests for intent elevation and obsession detection.
"""
import threading
from unittest.mock import MagicMock

import numpy as np

from ideaweb.intents import (
    ALL_INTENT_TAGS,
    Concept,
    IntentClassifier,
    canonical_intent,
    detect_obsessions,
)

from conftest import TopicEncoder, make_idea, topic_vector


def test_concept_tags():
    assert ALL_INTENT_TAGS == [
        "Grocery", "Work", "Health", "Finance", "Creative", "Home", "Tech", "Plans", "Learning",
    ]
    assert Concept.GROCERIES.tag == "Grocery"
    assert "eggs" in Concept.GROCERIES.value


def test_canonical_intent():
    assert canonical_intent("grocery") == "Grocery"
    assert canonical_intent("TECH") == "Tech"
    assert canonical_intent("Research") is None


class TestIntentClassifier:
    def test_grocery_text(self):
        enc = TopicEncoder()
        clf = IntentClassifier(enc.encode)
        assert clf.detect_intents(enc.encode("Buy milk and eggs for breakfast")) == ["Grocery"]

    def test_multiple_matches_in_concept_order(self):
        clf = IntentClassifier(lambda text: np.ones(3))
        assert clf.detect_intents(np.ones(3)) == ALL_INTENT_TAGS

    def test_absent_embedding(self):
        clf = IntentClassifier(TopicEncoder().encode)
        assert clf.detect_intents(None) == []

    def test_below_threshold(self):
        clf = IntentClassifier(TopicEncoder().encode)
        # cos 0.6 to the grocery seed, 0.8 to the work seed
        mixed = topic_vector("grocery") * 0.6 + topic_vector("work") * 0.8
        assert clf.detect_intents(mixed) == ["Work"]

    def test_concepts_embedded_once(self):
        embed = MagicMock(side_effect=lambda text: np.ones(4))
        clf = IntentClassifier(embed)
        for _ in range(5):
            clf.detect_intents(np.ones(4))
        assert embed.call_count == len(Concept)

    def test_concurrent_first_use_embeds_once(self):
        embed = MagicMock(side_effect=lambda text: np.ones(4))
        clf = IntentClassifier(embed)
        threads = [threading.Thread(target=clf.detect_intents, args=(np.ones(4),)) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert embed.call_count == len(Concept)

    def test_unembeddable_concepts_skipped(self):
        def embed(text):
            return None if text.startswith("Work") else topic_vector("work")
        clf = IntentClassifier(embed)
        assert len(clf.concept_embeddings) == len(Concept) - 1
        assert "Work" not in clf.detect_intents(topic_vector("work"))


class TestObsessions:
    def test_recurring_intent(self):
        ideas = [make_idea(tags=["Grocery", "Milk"]) for _ in range(3)] + [make_idea(tags=["Work"])]
        found = detect_obsessions(ideas)
        assert [(o.intent, o.count) for o in found] == [("Grocery", 3)]
        assert found[0].idea_ids == [i.idea_id for i in ideas[:3]]

    def test_only_recent_window_counts(self):
        ideas = [make_idea(tags=["Home"]) for _ in range(15)] + [make_idea(tags=["Tech"]) for _ in range(5)]
        found = detect_obsessions(ideas, window=15)
        assert [o.intent for o in found] == ["Home"]

    def test_sorted_by_count(self):
        ideas = (
            [make_idea(tags=["Work"]) for _ in range(3)]
            + [make_idea(tags=["health"]) for _ in range(4)]
        )
        found = detect_obsessions(ideas)
        assert [(o.intent, o.count) for o in found] == [("Health", 4), ("Work", 3)]

    def test_non_intent_tags_ignored(self):
        ideas = [make_idea(tags=["Research"]) for _ in range(5)]
        assert detect_obsessions(ideas) == []
