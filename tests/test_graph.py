"""
Tests for adjacency, clustering, density, cognitive core, centrality and
isolated cluster pairs.
"""
import math

import numpy as np
import pytest

from ideaweb.graph import (
    build_adjacency,
    cluster_score,
    degree_centrality,
    dominant_tag,
    find_clusters,
    find_cognitive_core,
    find_isolated_pairs,
    semantic_density,
)
from ideaweb.store import GraphEdge

from conftest import make_idea


def edges(*pairs):
    return [GraphEdge(a, b, 0.5) for a, b in pairs]


class TestAdjacency:
    def test_symmetric_and_deduplicated(self):
        adj = build_adjacency(edges(("a", "b"), ("b", "a"), ("a", "b")))
        assert adj == {"a": {"b"}, "b": {"a"}}

    def test_self_loops_dropped(self):
        assert build_adjacency(edges(("a", "a"))) == {}

    def test_restricted_to_allowed(self):
        adj = build_adjacency(edges(("a", "b"), ("b", "c")), allowed_ids={"a", "b"})
        assert adj == {"a": {"b"}, "b": {"a"}}


class TestClusters:
    def test_components_without_singletons(self):
        adj = build_adjacency(edges(("a", "b"), ("b", "c"), ("d", "e")))
        clusters = find_clusters(["a", "b", "c", "d", "e", "f"], adj)
        assert [sorted(c) for c in clusters] == [["a", "b", "c"], ["d", "e"]]

    def test_every_member_connected_within_cluster(self):
        rng = np.random.default_rng(7)
        ids = [f"n{i}" for i in range(30)]
        pairs = [(ids[i], ids[j]) for i, j in rng.integers(0, 30, size=(25, 2)) if i != j]
        adj = build_adjacency(edges(*pairs))
        for cluster in find_clusters(ids, adj):
            members = set(cluster)
            assert len(cluster) >= 2
            for node in cluster:
                assert adj[node] & members

    def test_empty(self):
        assert find_clusters([], {}) == []


class TestDensity:
    def test_identical_embeddings(self):
        emb = {"a": np.array([1.0, 0.0]), "b": np.array([2.0, 0.0]), "c": np.array([0.5, 0.0])}
        assert semantic_density(["a", "b", "c"], emb) == pytest.approx(1.0)

    def test_members_without_embeddings_ignored(self):
        emb = {"a": np.array([1.0, 0.0]), "b": None, "c": np.array([0.0, 1.0])}
        assert semantic_density(["a", "b", "c"], emb) == pytest.approx(0.0)
        assert semantic_density(["a", "b"], emb) == 0.0

    def test_accepts_ideas(self):
        ideas = [make_idea(embedding=[1.0, 0.0]), make_idea(embedding=[1.0, 1.0])]
        d = semantic_density([i.idea_id for i in ideas], ideas)
        assert d == pytest.approx(1 / math.sqrt(2))

    def test_sample_cap(self):
        from ideaweb.config import Config
        Config.graph.DENSITY_SAMPLE_CAP = 2
        emb = {"a": np.array([1.0, 0.0]), "b": np.array([1.0, 0.0]), "c": np.array([-1.0, 0.0])}
        assert semantic_density(["a", "b", "c"], emb) == pytest.approx(1.0)


class TestCognitiveCore:
    def test_none_without_clusters(self):
        assert find_cognitive_core([], {}) is None

    def test_highest_score_wins(self):
        same = np.array([1.0, 0.0])
        emb = {
            "a": same, "b": same,
            "c": same, "d": same, "e": same,
            "x": np.array([1.0, 0.0]), "y": np.array([0.0, 1.0]), "z": np.array([0.0, 1.0]),
        }
        clusters = [["a", "b"], ["c", "d", "e"], ["x", "y", "z"]]
        core = find_cognitive_core(clusters, emb)
        assert core.cluster_ids == ["c", "d", "e"]
        for c in clusters:
            assert core.score >= cluster_score(semantic_density(c, emb), len(c))

    def test_first_cluster_wins_ties(self):
        same = np.array([0.0, 1.0])
        emb = {k: same for k in "abcd"}
        core = find_cognitive_core([["a", "b"], ["c", "d"]], emb)
        assert core.cluster_ids == ["a", "b"]

    def test_dominant_tag(self):
        ideas = [make_idea(tags=["Research", "Work"]), make_idea(tags=["Research"]), make_idea(tags=["Home"])]
        cluster = [ideas[0].idea_id, ideas[1].idea_id]
        assert dominant_tag(cluster, ideas) == "Research"
        assert dominant_tag([], ideas) is None


class TestCentrality:
    @pytest.mark.parametrize("ids", [[], ["only"]])
    def test_small_graphs_empty(self, ids):
        assert degree_centrality(ids, {}) == {}

    def test_values_in_unit_interval(self):
        adj = build_adjacency(edges(("a", "b"), ("a", "c"), ("a", "d")))
        cent = degree_centrality(["a", "b", "c", "d", "e"], adj)
        assert cent["a"] == pytest.approx(3 / 4)
        assert cent["e"] == 0.0
        assert all(0.0 <= v <= 1.0 for v in cent.values())

    def test_capped_when_adjacency_exceeds_node_set(self):
        adj = build_adjacency(edges(("a", "b"), ("a", "c"), ("a", "d")))
        assert degree_centrality(["a", "b"], adj)["a"] == 1.0


class TestIsolatedPairs:
    def test_needs_two_clusters(self):
        assert find_isolated_pairs([["a", "b"]], {}) == []

    def test_disconnected_pairs_reported(self):
        clusters = [["a", "b", "c"], ["d", "e"], ["f", "g"]]
        adj = build_adjacency(edges(("a", "b"), ("b", "c"), ("d", "e"), ("f", "g"), ("c", "d")))
        pairs = find_isolated_pairs(clusters, adj)
        labelled = {(p.label_a, p.label_b) for p in pairs}
        # cluster 1 touches cluster 2 via c-d
        assert labelled == {("Cluster 1", "Cluster 3"), ("Cluster 2", "Cluster 3")}

    def test_only_largest_clusters_considered(self):
        clusters = [["s1", "s2"]] + [[f"b{i}a", f"b{i}b", f"b{i}c"] for i in range(4)]
        pairs = find_isolated_pairs(clusters, {}, top_n=4)
        assert len(pairs) == 6
        assert all("s1" not in p.cluster_a + p.cluster_b for p in pairs)
