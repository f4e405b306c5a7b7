"""
Tests for draft-time reference lookup over the faiss index.
"""
import numpy as np
import pytest

from ideaweb.references import ReferenceFinder, VectorIndex

from conftest import make_idea, topic_vector


def seed(store):
    ideas = {
        "milk": make_idea("milk", days_ago=1, embedding=topic_vector("grocery")),
        "bread": make_idea("bread", days_ago=2, embedding=topic_vector("grocery", 0.3)),
        "cheese": make_idea("cheese", days_ago=3, embedding=topic_vector("grocery", 0.5)),
        "butter": make_idea("butter", days_ago=4, embedding=topic_vector("grocery", 0.6)),
        "gym": make_idea("gym", days_ago=5, embedding=topic_vector("health")),
        "blank": make_idea("blank", days_ago=6),
    }
    for idea in ideas.values():
        store.insert_idea(idea)
    return ideas


class TestVectorIndex:
    def test_empty(self):
        assert VectorIndex(4).search(np.ones(4)) == []

    def test_cosine_ranking(self):
        index = VectorIndex(2)
        index.add("x", np.array([10.0, 0.0]))
        index.add("diag", np.array([1.0, 1.0]))
        index.add("y", np.array([0.0, 3.0]))
        hits = index.search(np.array([1.0, 0.1]), top_k=5)
        assert [k for k, _ in hits] == ["x", "diag", "y"]
        assert hits[0][1] == pytest.approx(1 / np.sqrt(1.01), rel=1e-4)


class TestReferenceFinder:
    def test_top_matches(self, any_store, encoder):
        ideas = seed(any_store)
        finder = ReferenceFinder(any_store, encoder.encode)
        found = finder.find("milk bread cheese butter eggs")
        assert len(found) == 3
        assert found[0].idea_id == ideas["milk"].idea_id
        assert ideas["gym"].idea_id not in {i.idea_id for i in found}

    def test_threshold(self, any_store, encoder):
        seed(any_store)
        finder = ReferenceFinder(any_store, encoder.encode, threshold=0.99)
        found = finder.find("milk bread cheese butter eggs")
        assert [i.content for i in found] == ["milk"]

    @pytest.mark.parametrize("text", ["", "milk", "  milk eggs  "])
    def test_short_text(self, any_store, encoder, text):
        seed(any_store)
        assert ReferenceFinder(any_store, encoder.encode).find(text) == []

    def test_no_embedding(self, any_store):
        seed(any_store)
        assert ReferenceFinder(any_store, lambda text: None).find("a long enough draft") == []

    def test_pool_limited_to_recent(self, any_store, encoder):
        ideas = seed(any_store)
        finder = ReferenceFinder(any_store, encoder.encode, pool_size=2)
        found = finder.find("Need milk, bread and cheese from the shop")
        assert {i.idea_id for i in found} <= {ideas["milk"].idea_id, ideas["bread"].idea_id}
