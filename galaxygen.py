"""
galaxygen.py
============
Core procedural galaxy generator for the warp-lane strategy map.

Generates star systems in a 2-D disk, connects them with warp lanes, repairs
the lane graph into a single connected component, adds redundant lanes for
weakly connected systems, and scatters anomalies.  Every stage draws from one
``SeededRandom`` in a fixed order, so identical seed + config gives an
identical galaxy.

Stages
------
A. Site placement      – rejection-sampled points with a minimum separation
B. Neighbor graph      – symmetrized k-nearest neighbors (cKDTree)
C. System assignment   – fixed systems claim nearest sites; the rest are
                         generated
D. Lane builder        – tier-scaled distance threshold + probabilistic
                         acceptance, with guaranteed closest lanes
E. Connectivity        – isolated fix-up, then Kruskal bridging
F. Resilience          – bounded extra lanes for vulnerable systems
G. Anomalies           – weighted categories at separated positions

Usage (importable)
------------------
    from galaxygen import generate, standard_config
    galaxy = generate(standard_config(seed=7))
    systems_df, lanes_df, anomalies_df = galaxy.to_frames()
"""

from __future__ import annotations

import math
import time
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np
import structlog
from scipy.spatial import cKDTree

from galaxy_model import (
    Anomaly,
    AnomalyCategory,
    ConfigError,
    ConnectivityConfig,
    DetailCatalog,
    FixedSystemSpec,
    Galaxy,
    GalaxyBounds,
    GalaxyConfig,
    PlacementStarvation,
    Resources,
    Site,
    StarSystem,
    StarvationPolicy,
    SystemClass,
    WarpLane,
)
from lane_graph import (
    FlatLaneRule,
    GraphBuilder,
    KNearestNeighbors,
    class_for_radius,
    make_strategies,
)
from seeded_random import SeededRandom

logger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------

STANDARD_FIXED_SYSTEMS: Tuple[FixedSystemSpec, ...] = (
    FixedSystemSpec("sol", "Sol System", SystemClass.ORIGIN, x=0.0, y=0.0),
    FixedSystemSpec("alpha-centauri", "Alpha Centauri", SystemClass.CORE, x=4.37, y=0.0),
    FixedSystemSpec("tau-ceti", "Tau Ceti", SystemClass.CORE, x=-7.8, y=9.1),
    FixedSystemSpec("barnards-star", "Barnard's Star", SystemClass.CORE, x=2.1, y=-5.6),
    FixedSystemSpec("bellatrix", "Bellatrix", SystemClass.RIM, x=180.0, y=165.0),
    FixedSystemSpec("lumiere", "Lumière", SystemClass.RIM, target_distance=250.0, tolerance=20.0),
    FixedSystemSpec("aspida", "Aspida", SystemClass.RIM, target_distance=350.0, tolerance=20.0),
)


def standard_config(
    seed: int = 1111111111,
    radius: float = 500.0,
    star_system_count: int = 400,
    anomaly_count: int = 25,
) -> GalaxyConfig:
    """The default galaxy: 500 LY disk, 400 systems, the seven fixed systems."""
    return GalaxyConfig(
        seed=seed,
        radius=radius,
        star_system_count=star_system_count,
        anomaly_count=anomaly_count,
        min_distance=2.5,
        connectivity=ConnectivityConfig(
            min_connections=1,
            max_connections=8,
            max_distance=10.0,
            distance_decay_factor=0.8,
            use_tiered_connectivity=True,
        ),
        fixed_systems=STANDARD_FIXED_SYSTEMS,
    )


# ---------------------------------------------------------------------------
# Name tables
# ---------------------------------------------------------------------------

_NAME_PREFIXES = ["Alpha", "Beta", "Gamma", "Delta", "Epsilon", "Zeta", "Eta", "Theta"]
_NAME_SUFFIXES = ["Centauri", "Draconis", "Leonis", "Aquarii", "Orionis", "Cygni", "Lyrae"]

_ANOMALY_NAMES = {
    AnomalyCategory.NEBULA:    ["Crimson Nebula", "Azure Cloud", "Stellar Nursery", "Dark Nebula"],
    AnomalyCategory.BLACKHOLE: ["Void Maw", "Event Horizon", "Singularity", "Dark Star"],
    AnomalyCategory.WORMHOLE:  ["Quantum Gate", "Space Fold", "Dimensional Rift", "Warp Tunnel"],
    AnomalyCategory.ARTIFACT:  ["Ancient Relic", "Precursor Site", "Mysterious Structure",
                                "Alien Beacon"],
    AnomalyCategory.RESOURCE:  ["Asteroid Field", "Resource Cluster", "Mining Zone",
                                "Rare Elements"],
}

ANOMALY_WEIGHTS: List[Tuple[AnomalyCategory, float]] = [
    (AnomalyCategory.NEBULA, 0.4),
    (AnomalyCategory.BLACKHOLE, 0.1),
    (AnomalyCategory.WORMHOLE, 0.1),
    (AnomalyCategory.ARTIFACT, 0.2),
    (AnomalyCategory.RESOURCE, 0.2),
]


def system_name(index: int) -> str:
    """Deterministic name for generated system number *index* (1-based)."""
    n_pre, n_suf = len(_NAME_PREFIXES), len(_NAME_SUFFIXES)
    prefix = _NAME_PREFIXES[index % n_pre]
    suffix = _NAME_SUFFIXES[(index // n_pre) % n_suf]
    cycle = index // (n_pre * n_suf)
    name = f"{prefix} {suffix}"
    return f"{name} {cycle + 1}" if cycle else name


def anomaly_name(category: AnomalyCategory, index: int) -> str:
    names = _ANOMALY_NAMES[category]
    return f"{names[index % len(names)]} {index // len(names) + 1}"


# ---------------------------------------------------------------------------
# Rejection sampling
# ---------------------------------------------------------------------------

def _clear_of(points: np.ndarray, pos: Tuple[float, float], min_distance: float) -> bool:
    """True when *pos* is at least *min_distance* from every row of *points*."""
    if len(points) == 0:
        return True
    d2 = np.sum((points - np.asarray(pos)) ** 2, axis=1)
    return bool(d2.min() >= min_distance * min_distance)


def sample_clear_position(
    rng: SeededRandom,
    radius: float,
    max_attempts: int,
    is_clear: Callable[[Tuple[float, float]], bool],
) -> Tuple[float, float]:
    """Draw disk points until *is_clear* accepts one.

    Raises ``PlacementStarvation`` (carrying the last sample) once
    *max_attempts* draws have been rejected.
    """
    pos = (0.0, 0.0)
    for _ in range(max_attempts):
        pos = rng.point_in_disk(radius)
        if is_clear(pos):
            return pos
    raise PlacementStarvation(max_attempts, pos)


# ---------------------------------------------------------------------------
# Stage A: site placement
# ---------------------------------------------------------------------------

def place_sites(
    count: int,
    radius: float,
    min_distance: float,
    rng: SeededRandom,
    max_attempts: int = 500,
    policy: StarvationPolicy = StarvationPolicy.DROP,
) -> List[Site]:
    """Sample up to *count* sites uniformly in the disk, pairwise separated.

    Under ``StarvationPolicy.DROP`` a starved slot is discarded, so fewer than
    *count* sites may be returned.
    """
    accepted = np.empty((count, 2), dtype=np.float64)
    n = 0
    dropped = 0
    for slot in range(count):
        try:
            pos = sample_clear_position(
                rng, radius, max_attempts,
                lambda p: _clear_of(accepted[:n], p, min_distance),
            )
        except PlacementStarvation as exc:
            logger.warning("Site placement starved", slot=slot, attempts=exc.attempts,
                           policy=policy.value)
            if policy is StarvationPolicy.DROP:
                dropped += 1
                continue
            pos = exc.position
        accepted[n] = pos
        n += 1

    logger.info("Placed sites", requested=count, placed=n, dropped=dropped)
    return [Site(x=float(x), y=float(y)) for x, y in accepted[:n]]


# ---------------------------------------------------------------------------
# Stage B: neighbor graph
# ---------------------------------------------------------------------------

def compute_neighbors(sites: Sequence[Site], strategy: KNearestNeighbors) -> None:
    """Fill ``Site.neighbors`` from *strategy*, then make the relation symmetric."""
    chosen = strategy.select(sites)
    for site, picks in zip(sites, chosen):
        site.neighbors = list(picks)

    for i, site in enumerate(sites):
        for j in list(site.neighbors):
            if i not in sites[j].neighbors:
                sites[j].neighbors.append(i)

    if sites:
        avg = sum(len(s.neighbors) for s in sites) / len(sites)
        logger.info("Computed neighbor graph", sites=len(sites), avg_neighbors=round(avg, 2))


# ---------------------------------------------------------------------------
# Stage C: system assignment
# ---------------------------------------------------------------------------

def _fixed_position(spec: FixedSystemSpec, rng: SeededRandom) -> Tuple[float, float]:
    if spec.has_fixed_position:
        return float(spec.x), float(spec.y)
    target = float(spec.target_distance)
    distance = rng.range(target - spec.tolerance, target + spec.tolerance)
    angle = rng.range(0.0, 2.0 * math.pi)
    return distance * math.cos(angle), distance * math.sin(angle)


def _nearest_unbound(sites: Sequence[Site], pos: Tuple[float, float]) -> int:
    best, best_d = -1, math.inf
    for i, site in enumerate(sites):
        if site.has_system:
            continue
        d = math.hypot(site.x - pos[0], site.y - pos[1])
        if d < best_d:
            best, best_d = i, d
    return best


def assign_systems(
    sites: List[Site],
    config: GalaxyConfig,
    rng: SeededRandom,
    catalog: Optional[DetailCatalog] = None,
) -> Tuple[List[StarSystem], List[int]]:
    """Bind fixed and generated systems to sites.

    Returns
    -------
    systems     : fixed systems first (config order), then generated ones in
                  site order
    site_system : for each site, the index of its system in *systems*
    """
    if len(config.fixed_systems) > len(sites):
        raise ConfigError(
            f"{len(config.fixed_systems)} fixed systems but only {len(sites)} sites placed"
        )

    systems: List[StarSystem] = []
    site_system = [-1] * len(sites)

    for spec in config.fixed_systems:
        pos = _fixed_position(spec, rng)
        site_idx = _nearest_unbound(sites, pos)
        sites[site_idx].has_system = True
        sites[site_idx].system_id = spec.id
        site_system[site_idx] = len(systems)

        is_origin = spec.system_class is SystemClass.ORIGIN
        population = 1_000_000 if is_origin else 0
        system = StarSystem(
            id=spec.id,
            name=spec.name,
            x=pos[0],
            y=pos[1],
            system_class=spec.system_class,
            is_fixed=True,
            explored=is_origin,
            population=population,
            gdp=population * rng.range(0.8, 1.5),
            resources=Resources(
                minerals=rng.int_range(50, 200),
                energy=rng.int_range(50, 200),
                research=rng.int_range(50, 200),
            ),
        )
        systems.append(system)
        logger.debug("Placed fixed system", id=spec.id, x=round(pos[0], 2),
                     y=round(pos[1], 2), site=site_idx)

    number = 1
    for i, site in enumerate(sites):
        if site.has_system or len(systems) >= config.star_system_count:
            continue
        system_id = f"system-{number}"
        site.has_system = True
        site.system_id = system_id
        site_system[i] = len(systems)
        systems.append(StarSystem(
            id=system_id,
            name=system_name(number),
            x=site.x,
            y=site.y,
            system_class=class_for_radius(math.hypot(site.x, site.y), config.radius,
                                          config.connectivity),
            resources=Resources(
                minerals=rng.int_range(10, 150),
                energy=rng.int_range(10, 150),
                research=rng.int_range(10, 150),
            ),
        ))
        number += 1

    if catalog is not None:
        for system in systems:
            system.has_detail = catalog.detail_for(system.id) is not None

    logger.info("Assigned systems", fixed=len(config.fixed_systems),
                generated=number - 1, total=len(systems))
    return systems, site_system


# ---------------------------------------------------------------------------
# Stage D: lane builder
# ---------------------------------------------------------------------------

def build_lanes(
    builder: GraphBuilder,
    sites: Sequence[Site],
    site_system: Sequence[int],
    config: GalaxyConfig,
    rng: SeededRandom,
    rule: FlatLaneRule,
) -> List[WarpLane]:
    """Turn the site neighbor graph into warp lanes on *builder*.

    1. Each system draws a degree target in [min, max] connections (+2 for
       origin/core systems).
    2. Every system gets lanes to its ``guaranteed_neighbors`` closest
       neighbors within the tiered threshold, with no probability test.
    3. Each remaining unordered neighbor pair within the threshold is
       accepted with probability ``exp(-(d / max_distance) × decay)`` while
       its lower-index endpoint is below its target.
    """
    conn = config.connectivity
    systems = builder.systems

    targets = []
    for system in systems:
        extra = 2 if system.system_class in (SystemClass.ORIGIN, SystemClass.CORE) else 0
        targets.append(rng.int_range(conn.min_connections, conn.max_connections + extra))

    # neighbor lists by system index, sorted by (distance, index)
    candidates: List[List[Tuple[float, int]]] = [[] for _ in systems]
    for site_idx, site in enumerate(sites):
        i = site_system[site_idx]
        if i < 0:
            continue
        for nb in site.neighbors:
            j = site_system[nb]
            if j < 0 or j == i:
                continue
            candidates[i].append((builder.distance(i, j), j))
    for lst in candidates:
        lst.sort()

    def within(i: int, j: int, d: float) -> bool:
        return d <= rule.effective_max(systems[i].system_class, systems[j].system_class)

    guaranteed = 0
    for i, lst in enumerate(candidates):
        for d, j in lst[:conn.guaranteed_neighbors]:
            if within(i, j, d) and builder.try_add_edge(i, j, d):
                guaranteed += 1

    evaluated = probabilistic = 0
    for i, lst in enumerate(candidates):
        for d, j in lst:
            if j < i or builder.has_edge(i, j):
                continue
            if not within(i, j, d) or builder.degree(i) >= targets[i]:
                continue
            evaluated += 1
            sparse = builder.degree(i) < 2 or builder.degree(j) < 2
            if rng.next() < rule.acceptance(d, sparse):
                builder.try_add_edge(i, j, d)
                probabilistic += 1

    logger.info("Built lanes", guaranteed=guaranteed, evaluated=evaluated,
                probabilistic=probabilistic, total=len(builder.lanes))
    return builder.lanes


# ---------------------------------------------------------------------------
# Stage E: connectivity guarantor
# ---------------------------------------------------------------------------

def ensure_connectivity(
    builder: GraphBuilder,
    radius: float,
    fallback_fraction: float = 0.3,
) -> List[WarpLane]:
    """Make the lane graph a single connected component.

    Pass 1 links each lane-less system to its nearest system when that lies
    within ``fallback_fraction × radius``.  Pass 2 runs Kruskal over every
    pair spanning two components, ordered by distance and then by the
    lexicographic id pair, until one component remains.

    Returns the lanes added.
    """
    n = len(builder)
    start = len(builder.lanes)
    if n < 2:
        return []

    xy = builder.positions
    tree = cKDTree(xy)
    fallback = fallback_fraction * radius
    for i in range(n):
        if builder.degree(i) > 0:
            continue
        dists, idxs = tree.query(xy[i], k=2)
        for d, j in zip(dists, idxs):
            j = int(j)
            if j != i:
                if d <= fallback and builder.try_add_edge(i, j, float(d)):
                    logger.debug("Connected isolated system",
                                 system=builder.systems[i].id,
                                 to=builder.systems[j].id, distance=round(float(d), 2))
                break
    isolated_fixes = len(builder.lanes) - start

    uf = builder.union_find()
    ids = [s.id for s in builder.systems]
    rank = np.empty(n, dtype=np.int64)
    rank[np.argsort(np.array(ids, dtype=object), kind="stable")] = np.arange(n)

    # Kruskal over cross-component pairs, drawn from a search radius that
    # doubles each round.  Every pair within the previous radius is already
    # inside one component, so each round only sees longer pairs.
    reach = fallback if fallback > 0 else radius
    while uf.components > 1:
        pairs = tree.query_pairs(reach, output_type="ndarray")
        reach *= 2.0
        if len(pairs) == 0:
            continue
        roots = uf.roots()
        ii, jj = pairs[:, 0], pairs[:, 1]
        cross = roots[ii] != roots[jj]
        ii, jj = ii[cross], jj[cross]
        if len(ii) == 0:
            continue
        dist = np.hypot(xy[ii, 0] - xy[jj, 0], xy[ii, 1] - xy[jj, 1])
        lo = np.minimum(rank[ii], rank[jj])
        hi = np.maximum(rank[ii], rank[jj])
        order = np.lexsort((hi, lo, dist))

        for k in order:
            i, j = int(ii[k]), int(jj[k])
            if uf.union(i, j):
                builder.try_add_edge(i, j, float(dist[k]))
                logger.debug("Added bridge lane", source=ids[i], target=ids[j],
                             distance=round(float(dist[k]), 2))
                if uf.components == 1:
                    break

    added = builder.lanes[start:]
    logger.info("Ensured connectivity", isolated_fixes=isolated_fixes,
                bridges=len(added) - isolated_fixes)
    return added


# ---------------------------------------------------------------------------
# Stage F: resilience augmenter
# ---------------------------------------------------------------------------

def add_redundant_lanes(
    builder: GraphBuilder,
    radius: float,
    conn: ConnectivityConfig,
) -> List[WarpLane]:
    """Add extra lanes from vulnerable systems toward well-connected ones.

    A system is vulnerable when its degree is at most ``vulnerable_degree``,
    or when it lies beyond ``outlying_fraction × radius`` from the centroid
    with degree below ``outlying_degree``.  Total additions are capped at
    ``min(n // 4, redundancy_cap)``.  Returns the lanes added.
    """
    n = len(builder)
    if n < 3:
        logger.info("Skipped redundant lanes", systems=n)
        return []

    start = len(builder.lanes)
    xy = builder.positions
    centroid = xy.mean(axis=0)
    from_center = np.hypot(xy[:, 0] - centroid[0], xy[:, 1] - centroid[1])
    degrees = builder.degrees()
    vulnerable = [
        i for i in range(n)
        if degrees[i] <= conn.vulnerable_degree
        or (from_center[i] > conn.outlying_fraction * radius
            and degrees[i] < conn.outlying_degree)
    ]

    cap = min(n // 4, conn.redundancy_cap)
    max_reach = conn.redundancy_distance_fraction * radius
    added = 0
    order_idx = np.arange(n)
    for i in vulnerable:
        if added >= cap:
            break
        dist = np.hypot(xy[:, 0] - xy[i, 0], xy[:, 1] - xy[i, 1])
        score = dist / (1.0 + builder.degrees() * conn.hub_weight)
        eligible = np.ones(n, dtype=bool)
        eligible[i] = False
        eligible[builder.adjacency[i]] = False
        ranked = [int(j) for j in np.lexsort((order_idx, score)) if eligible[j]]

        to_add = 2 if builder.degree(i) == 1 else 1
        for j in ranked[:to_add]:
            if added >= cap:
                break
            if dist[j] < max_reach and builder.try_add_edge(i, j, float(dist[j])):
                added += 1
                logger.debug("Added redundant lane", source=builder.systems[i].id,
                             target=builder.systems[j].id, distance=round(float(dist[j]), 2))

    logger.info("Added redundant lanes", vulnerable=len(vulnerable), added=added, cap=cap)
    return builder.lanes[start:]


# ---------------------------------------------------------------------------
# Stage G: anomalies
# ---------------------------------------------------------------------------

def place_anomalies(
    count: int,
    systems: Sequence[StarSystem],
    config: GalaxyConfig,
    rng: SeededRandom,
) -> List[Anomaly]:
    """Scatter *count* anomalies away from systems and from each other."""
    system_xy = np.array([(s.x, s.y) for s in systems], dtype=np.float64).reshape(-1, 2)
    placed_xy = np.empty((count, 2), dtype=np.float64)
    anomalies: List[Anomaly] = []
    starved = 0

    def is_clear(pos: Tuple[float, float]) -> bool:
        return (_clear_of(system_xy, pos, config.anomaly_system_distance)
                and _clear_of(placed_xy[:len(anomalies)], pos,
                              config.anomaly_anomaly_distance))

    for i in range(count):
        category = rng.weighted_choice(ANOMALY_WEIGHTS)
        try:
            pos = sample_clear_position(rng, config.radius, config.anomaly_attempts, is_clear)
        except PlacementStarvation as exc:
            starved += 1
            logger.warning("Anomaly placement starved", slot=i, attempts=exc.attempts,
                           policy=config.anomaly_starvation.value)
            if config.anomaly_starvation is StarvationPolicy.DROP:
                continue
            pos = exc.position
        number = i + 1
        placed_xy[len(anomalies)] = pos
        anomalies.append(Anomaly(
            id=f"anomaly-{number}",
            category=category,
            name=anomaly_name(category, number),
            x=float(pos[0]),
            y=float(pos[1]),
        ))

    logger.info("Placed anomalies", requested=count, placed=len(anomalies), starved=starved)
    return anomalies


# ---------------------------------------------------------------------------
# Main generator class
# ---------------------------------------------------------------------------

def compute_bounds(systems: Sequence[StarSystem], radius: float) -> GalaxyBounds:
    """Bounds of the disk, widened for fixed systems placed outside it."""
    xs = [s.x for s in systems] + [-radius, radius]
    ys = [s.y for s in systems] + [-radius, radius]
    return GalaxyBounds(min(xs), max(xs), min(ys), max(ys), radius)


class GalaxyGenerator:
    """Runs stages A–G against one shared random source.

    Parameters
    ----------
    config  : GalaxyConfig
    catalog : optional detail catalog; only sets ``StarSystem.has_detail``
    """

    def __init__(self, config: GalaxyConfig, catalog: Optional[DetailCatalog] = None) -> None:
        self.config = config
        self.catalog = catalog

    def run(self) -> Galaxy:
        cfg = self.config
        cfg.validate()

        rng = SeededRandom(cfg.seed)
        log = logger.bind(seed=cfg.seed)
        log.info("Generating galaxy", radius=cfg.radius, systems=cfg.star_system_count,
                 anomalies=cfg.anomaly_count,
                 tiered=cfg.connectivity.use_tiered_connectivity)
        t_start = time.perf_counter()

        neighbor_strategy, lane_rule = make_strategies(cfg.radius, cfg.connectivity)

        sites = place_sites(cfg.star_system_count, cfg.radius, cfg.min_distance, rng,
                            cfg.site_attempts, cfg.site_starvation)
        compute_neighbors(sites, neighbor_strategy)
        systems, site_system = assign_systems(sites, cfg, rng, self.catalog)

        builder = GraphBuilder(systems, cfg.ly_per_turn)
        build_lanes(builder, sites, site_system, cfg, rng, lane_rule)
        ensure_connectivity(builder, cfg.radius, cfg.connectivity.isolated_fallback_fraction)
        add_redundant_lanes(builder, cfg.radius, cfg.connectivity)

        anomalies = place_anomalies(cfg.anomaly_count, systems, cfg, rng)

        galaxy = Galaxy(
            config=cfg,
            systems=systems,
            lanes=builder.lanes,
            anomalies=anomalies,
            bounds=compute_bounds(systems, cfg.radius),
        )
        log.info("Generated galaxy", elapsed=round(time.perf_counter() - t_start, 3),
                 draws=rng.draws, **summarize(galaxy))
        return galaxy


def summarize(galaxy: Galaxy) -> dict:
    """Headline statistics for logging and the CLI report."""
    n = len(galaxy.systems)
    distances = [lane.distance for lane in galaxy.lanes]
    return {
        "system_count": n,
        "lane_count": len(galaxy.lanes),
        "anomaly_count": len(galaxy.anomalies),
        "avg_connections": round(2 * len(galaxy.lanes) / n, 3) if n else 0.0,
        "max_lane_distance": round(max(distances), 3) if distances else 0.0,
        "avg_lane_distance": round(sum(distances) / len(distances), 3) if distances else 0.0,
    }


def generate(config: GalaxyConfig, catalog: Optional[DetailCatalog] = None) -> Galaxy:
    """Generate a galaxy; raises ``ConfigError`` for invalid configurations."""
    return GalaxyGenerator(config, catalog).run()


# ---------------------------------------------------------------------------
# Script entry point (standard preset)
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    print(summarize(generate(standard_config())))
