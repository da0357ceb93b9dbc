"""Tests for union-find, the graph builder, neighbor strategies and lane rules."""

import math

import pytest

from conftest import make_systems
from galaxy_model import ConnectivityConfig, Site, SystemClass
from lane_graph import (
    FlatLaneRule,
    GraphBuilder,
    KNearestNeighbors,
    TieredLaneRule,
    TieredNeighbors,
    UnionFind,
    base_lane_distance,
    class_for_radius,
    count_components,
    make_strategies,
)


class TestUnionFind:
    """Disjoint-set behaviour."""

    def test_initial_components(self):
        assert UnionFind(5).components == 5

    def test_union_merges_once(self):
        uf = UnionFind(4)
        assert uf.union(0, 1)
        assert not uf.union(1, 0)
        assert uf.components == 3
        assert uf.find(0) == uf.find(1)

    def test_chain(self):
        uf = UnionFind(6)
        for i in range(5):
            uf.union(i, i + 1)
        assert uf.components == 1
        assert len(set(uf.roots().tolist())) == 1


class TestGraphBuilder:
    """Idempotent lane insertion and adjacency bookkeeping."""

    @pytest.fixture
    def builder(self):
        systems = make_systems({"a": (0, 0), "b": (3, 4), "c": (12, 0)})
        return GraphBuilder(systems, ly_per_turn=5.0)

    def test_add_edge(self, builder):
        assert builder.try_add_edge(0, 1)
        lane = builder.lanes[0]
        assert lane.id == "a-b"
        assert (lane.source, lane.target) == ("a", "b")
        assert lane.distance == pytest.approx(5.0)
        assert lane.travel_time == 1
        assert builder.systems[0].connections == ["b"]
        assert builder.systems[1].connections == ["a"]

    def test_duplicate_is_noop(self, builder):
        """Re-adding either orientation of a pair changes nothing."""
        builder.try_add_edge(0, 1)
        assert not builder.try_add_edge(1, 0)
        assert not builder.try_add_edge(0, 1)
        assert len(builder.lanes) == 1
        assert builder.degree(0) == 1

    def test_self_loop_rejected(self, builder):
        assert not builder.try_add_edge(2, 2)
        assert builder.lanes == []

    def test_travel_time_rounds_up(self, builder):
        builder.try_add_edge(0, 2)
        assert builder.lanes[0].travel_time == math.ceil(12 / 5)

    def test_discovered_requires_both_explored(self, builder):
        builder.systems[0].explored = True
        builder.try_add_edge(0, 1)
        builder.systems[1].explored = True
        builder.try_add_edge(0, 2)
        builder.try_add_edge(1, 0)
        assert [lane.discovered for lane in builder.lanes] == [False, False]
        builder.systems[2].explored = True
        builder.try_add_edge(1, 2)
        assert builder.lanes[-1].discovered

    def test_union_find_reflects_lanes(self, builder):
        builder.try_add_edge(0, 1)
        assert builder.union_find().components == 2

    def test_count_components(self, builder):
        builder.try_add_edge(0, 1)
        builder.try_add_edge(1, 2)
        assert count_components(builder.systems, builder.lanes) == 1


class TestNeighborStrategies:
    """k-nearest selection before symmetrization."""

    def test_k_limit(self):
        sites = [Site(float(i), 0.0) for i in range(10)]
        chosen = KNearestNeighbors(k=3, cap=100.0).select(sites)
        assert all(len(picks) == 3 for picks in chosen)
        assert 0 not in chosen[0]
        assert sorted(chosen[0]) == [1, 2, 3]

    def test_cap_excludes_far_sites(self):
        sites = [Site(0.0, 0.0), Site(1.0, 0.0), Site(500.0, 0.0)]
        chosen = KNearestNeighbors(k=2, cap=10.0).select(sites)
        assert chosen[0] == [1]
        assert chosen[2] == []

    def test_single_site(self):
        assert KNearestNeighbors(k=3, cap=10.0).select([Site(0.0, 0.0)]) == [[]]

    def test_tiered_gives_core_sites_more(self):
        sites = [Site(float(i), 0.0) for i in range(12)]
        strategy = TieredNeighbors(k=3, cap=100.0, core_radius=0.5, core_extra=2)
        chosen = strategy.select(sites)
        assert len(chosen[0]) == 5
        assert len(chosen[5]) == 3


class TestLaneRules:
    """Tiered and flat distance thresholds."""

    conn = ConnectivityConfig()

    def test_base_distance(self):
        assert base_lane_distance(500.0, self.conn) == pytest.approx(125.0)
        assert base_lane_distance(20.0, self.conn) == pytest.approx(15.0)

    def test_tiered_uses_more_generous_class(self):
        rule = TieredLaneRule(100.0, self.conn)
        assert rule.effective_max(SystemClass.RIM, SystemClass.RIM) == pytest.approx(40.0)
        assert rule.effective_max(SystemClass.RIM, SystemClass.CORE) == pytest.approx(200.0)
        assert rule.effective_max(SystemClass.ORIGIN, SystemClass.RIM) == pytest.approx(250.0)

    def test_flat_ignores_class(self):
        rule = FlatLaneRule(100.0, self.conn)
        assert rule.effective_max(SystemClass.RIM, SystemClass.ORIGIN) == pytest.approx(100.0)

    def test_acceptance_probability(self):
        rule = FlatLaneRule(100.0, self.conn)
        expected = math.exp(-0.5 * self.conn.distance_decay_factor)
        assert rule.acceptance(5.0, sparse=False) == pytest.approx(expected)
        assert rule.acceptance(5.0, sparse=True) == pytest.approx(expected * 1.5)

    def test_acceptance_normalized_by_max_distance(self):
        """The tier-scaled threshold only gates pairs; it does not soften the decay."""
        rule = TieredLaneRule(base_lane_distance(500.0, self.conn), self.conn)
        assert rule.effective_max(SystemClass.CORE, SystemClass.CORE) == pytest.approx(250.0)
        assert rule.acceptance(20.0, sparse=False) == pytest.approx(math.exp(-2 * 0.8))

    def test_acceptance_follows_configured_distance(self):
        conn = ConnectivityConfig(max_distance=40.0, distance_decay_factor=1.0)
        rule = FlatLaneRule(base_lane_distance(100.0, conn), conn)
        assert rule.acceptance(20.0, sparse=False) == pytest.approx(math.exp(-0.5))
        assert rule.acceptance(0.0, sparse=False) == pytest.approx(1.0)

    def test_make_strategies_follows_flag(self):
        neighbors, rule = make_strategies(500.0, ConnectivityConfig())
        assert isinstance(neighbors, TieredNeighbors)
        assert isinstance(rule, TieredLaneRule)
        neighbors, rule = make_strategies(
            500.0, ConnectivityConfig(use_tiered_connectivity=False))
        assert type(neighbors) is KNearestNeighbors
        assert type(rule) is FlatLaneRule
        assert neighbors.cap == pytest.approx(1000.0)

    def test_class_for_radius(self):
        assert class_for_radius(300.0, 500.0, self.conn) is SystemClass.CORE
        assert class_for_radius(300.1, 500.0, self.conn) is SystemClass.RIM
