"""
lane_graph.py
=============
Graph primitives shared by the lane-building, repair and resilience stages.

``GraphBuilder`` owns the lane list and an index-keyed adjacency structure;
every stage adds lanes through ``GraphBuilder.try_add_edge`` so duplicate and
self-loop rejection lives in one place.  Neighbor-graph strategies and lane
acceptance rules are small pluggable objects selected by
``ConnectivityConfig.use_tiered_connectivity``.
"""

from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from galaxy_model import (
    ConnectivityConfig,
    Site,
    StarSystem,
    SystemClass,
    WarpLane,
)


# ---------------------------------------------------------------------------
# Disjoint-set forest
# ---------------------------------------------------------------------------

class UnionFind:
    """Array-backed union-find with path halving and union by rank."""

    def __init__(self, n: int) -> None:
        self.parent = np.arange(n, dtype=np.int64)
        self.rank = np.zeros(n, dtype=np.int64)
        self.components = n

    def find(self, x: int) -> int:
        parent = self.parent
        while parent[x] != x:
            parent[x] = parent[parent[x]]   # path halving
            x = int(parent[x])
        return int(x)

    def union(self, a: int, b: int) -> bool:
        """Merge the sets holding *a* and *b*; False if already merged."""
        ra, rb = self.find(a), self.find(b)
        if ra == rb:
            return False
        if self.rank[ra] < self.rank[rb]:
            ra, rb = rb, ra
        self.parent[rb] = ra
        if self.rank[ra] == self.rank[rb]:
            self.rank[ra] += 1
        self.components -= 1
        return True

    def roots(self) -> np.ndarray:
        return np.array([self.find(i) for i in range(len(self.parent))], dtype=np.int64)


# ---------------------------------------------------------------------------
# Lane accumulation
# ---------------------------------------------------------------------------

class GraphBuilder:
    """Lane list plus adjacency over a dense array of systems.

    Systems are addressed by their index in ``systems``; string ids only
    appear on the ``WarpLane`` records and ``StarSystem.connections``.

    Parameters
    ----------
    systems     : the galaxy's systems, in their final order
    ly_per_turn : light-years covered per turn, for lane travel time
    """

    def __init__(self, systems: Sequence[StarSystem], ly_per_turn: float = 5.0) -> None:
        self.systems = list(systems)
        self.ly_per_turn = ly_per_turn
        self.positions = np.array(
            [(s.x, s.y) for s in self.systems], dtype=np.float64
        ).reshape(-1, 2)
        self.adjacency: List[List[int]] = [[] for _ in self.systems]
        self.lanes: List[WarpLane] = []
        self._pairs: set = set()

    def __len__(self) -> int:
        return len(self.systems)

    def distance(self, i: int, j: int) -> float:
        dx, dy = self.positions[i] - self.positions[j]
        return math.hypot(dx, dy)

    def has_edge(self, i: int, j: int) -> bool:
        return (min(i, j), max(i, j)) in self._pairs

    def degree(self, i: int) -> int:
        return len(self.adjacency[i])

    def degrees(self) -> np.ndarray:
        return np.array([len(a) for a in self.adjacency], dtype=np.int64)

    def try_add_edge(self, i: int, j: int, distance: float | None = None) -> bool:
        """Create the lane i–j unless it is a self-loop or already exists."""
        if i == j:
            return False
        key = (min(i, j), max(i, j))
        if key in self._pairs:
            return False
        if distance is None:
            distance = self.distance(i, j)

        a, b = self.systems[i], self.systems[j]
        self.lanes.append(WarpLane(
            id=f"{a.id}-{b.id}",
            source=a.id,
            target=b.id,
            distance=float(distance),
            travel_time=int(math.ceil(distance / self.ly_per_turn)),
            discovered=a.explored and b.explored,
        ))
        self._pairs.add(key)
        self.adjacency[i].append(j)
        self.adjacency[j].append(i)
        a.connections.append(b.id)
        b.connections.append(a.id)
        return True

    def union_find(self) -> UnionFind:
        """Fresh union-find with every current lane merged."""
        uf = UnionFind(len(self.systems))
        for i, j in self._pairs:
            uf.union(i, j)
        return uf


def count_components(systems: Sequence[StarSystem], lanes: Sequence[WarpLane]) -> int:
    """Number of connected components of the lane graph over *systems*."""
    index: Dict[str, int] = {s.id: i for i, s in enumerate(systems)}
    uf = UnionFind(len(systems))
    for lane in lanes:
        uf.union(index[lane.source], index[lane.target])
    return uf.components


# ---------------------------------------------------------------------------
# Topological classes
# ---------------------------------------------------------------------------

def class_for_radius(r: float, radius: float, conn: ConnectivityConfig) -> SystemClass:
    """Radial class for a generated system: core inside the core radius."""
    return SystemClass.CORE if r <= conn.core_radius_fraction * radius else SystemClass.RIM


def tier_multiplier(system_class: SystemClass, conn: ConnectivityConfig) -> float:
    if system_class is SystemClass.ORIGIN:
        return conn.origin_multiplier
    if system_class is SystemClass.CORE:
        return conn.core_multiplier
    return conn.rim_multiplier


# ---------------------------------------------------------------------------
# Neighbor-graph strategies
# ---------------------------------------------------------------------------

class KNearestNeighbors:
    """Each site keeps its ``k`` nearest sites lying within ``cap``."""

    def __init__(self, k: int, cap: float) -> None:
        self.k = k
        self.cap = cap

    def neighbor_count(self, site: Site) -> int:
        return self.k

    def select(self, sites: Sequence[Site]) -> List[List[int]]:
        """Directed neighbor lists (before symmetrization)."""
        n = len(sites)
        if n < 2:
            return [[] for _ in range(n)]

        xy = np.array([(s.x, s.y) for s in sites], dtype=np.float64)
        counts = [min(self.neighbor_count(s), n - 1) for s in sites]
        # +1 because every site's nearest hit is itself
        k_query = max(counts) + 1
        tree = cKDTree(xy)
        dists, idxs = tree.query(xy, k=k_query, distance_upper_bound=self.cap)

        chosen: List[List[int]] = []
        for i in range(n):
            picks: List[int] = []
            for d, j in zip(dists[i], idxs[i]):
                if len(picks) >= counts[i]:
                    break
                j = int(j)
                if j == i or j >= n or not np.isfinite(d):
                    continue
                picks.append(j)
            chosen.append(picks)
        return chosen


class TieredNeighbors(KNearestNeighbors):
    """k-nearest with ``core_extra`` additional neighbors for core sites."""

    def __init__(self, k: int, cap: float, core_radius: float, core_extra: int) -> None:
        super().__init__(k, cap)
        self.core_radius = core_radius
        self.core_extra = core_extra

    def neighbor_count(self, site: Site) -> int:
        if math.hypot(site.x, site.y) <= self.core_radius:
            return self.k + self.core_extra
        return self.k


# ---------------------------------------------------------------------------
# Lane acceptance rules
# ---------------------------------------------------------------------------

class FlatLaneRule:
    """Same distance threshold for every pair of systems.

    ``effective_max`` is the hard cutoff for a pair; the acceptance
    probability normalizes distance by the configured ``max_distance``.
    """

    def __init__(self, base_max: float, conn: ConnectivityConfig) -> None:
        self.base_max = base_max
        self.max_distance = conn.max_distance
        self.decay = conn.distance_decay_factor
        self.diversity_bonus = conn.diversity_bonus

    def multiplier(self, a: SystemClass, b: SystemClass) -> float:
        return 1.0

    def effective_max(self, a: SystemClass, b: SystemClass) -> float:
        return self.base_max * self.multiplier(a, b)

    def acceptance(self, distance: float, sparse: bool) -> float:
        """exp(-(distance / max_distance) × decay), boosted when an endpoint is sparse."""
        probability = math.exp(-(distance / self.max_distance) * self.decay)
        if sparse:
            probability *= self.diversity_bonus
        return probability


class TieredLaneRule(FlatLaneRule):
    """Threshold scaled by the more generous of the two endpoint classes."""

    def __init__(self, base_max: float, conn: ConnectivityConfig) -> None:
        super().__init__(base_max, conn)
        self._conn = conn

    def multiplier(self, a: SystemClass, b: SystemClass) -> float:
        return max(tier_multiplier(a, self._conn), tier_multiplier(b, self._conn))


def base_lane_distance(radius: float, conn: ConnectivityConfig) -> float:
    return max(conn.max_distance * conn.lane_distance_scale,
               radius * conn.lane_radius_fraction)


def make_strategies(
    radius: float, conn: ConnectivityConfig
) -> Tuple[KNearestNeighbors, FlatLaneRule]:
    """Neighbor strategy and lane rule for the configured connectivity mode."""
    cap = conn.neighbor_cap_fraction * radius
    base_max = base_lane_distance(radius, conn)
    if conn.use_tiered_connectivity:
        return (
            TieredNeighbors(conn.neighbor_count, cap,
                            conn.core_radius_fraction * radius,
                            conn.core_extra_neighbors),
            TieredLaneRule(base_max, conn),
        )
    return KNearestNeighbors(conn.neighbor_count, cap), FlatLaneRule(base_max, conn)
