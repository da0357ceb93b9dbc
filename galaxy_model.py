"""
galaxy_model.py
===============
Configuration and output types for the warp-lane galaxy generator.

The generator consumes a ``GalaxyConfig`` and produces a ``Galaxy``; the
``Galaxy`` is the only artifact handed to collaborators (serializers, the
HTTP layer, persistence).  Everything here is plain data plus validation.

Spatial units are light-years throughout.
"""

from __future__ import annotations

import dataclasses
import enum
import math
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

import pandas as pd


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ConfigError(ValueError):
    """Invalid generation configuration; raised before any site is placed."""


class PlacementStarvation(Exception):
    """Rejection sampling ran out of attempts.

    Carries the last sampled position so the caller can apply its
    ``StarvationPolicy``.  Never escapes ``generate()``.
    """

    def __init__(self, attempts: int, position: Tuple[float, float]) -> None:
        super().__init__(f"no valid position after {attempts} attempts")
        self.attempts = attempts
        self.position = position


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class SystemClass(str, enum.Enum):
    """Topological tier governing how generous a system's lane range is."""

    ORIGIN = "origin"
    CORE = "core"
    RIM = "rim"


class AnomalyCategory(str, enum.Enum):
    NEBULA = "nebula"
    BLACKHOLE = "blackhole"
    WORMHOLE = "wormhole"
    ARTIFACT = "artifact"
    RESOURCE = "resource"


class StarvationPolicy(str, enum.Enum):
    """What a placement stage does when its attempt cap is exhausted."""

    DROP = "drop"        # discard the slot; fewer items than requested
    ACCEPT = "accept"    # keep the last (possibly too close) sample


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class FixedSystemSpec:
    """A designer-specified system.

    Either ``x``/``y`` are given (exact coordinates, which may lie outside
    the nominal disk) or ``target_distance``/``tolerance`` describe a polar
    band around the origin in which the position is sampled.
    """

    id: str
    name: str
    system_class: SystemClass = SystemClass.RIM
    x: Optional[float] = None
    y: Optional[float] = None
    target_distance: Optional[float] = None
    tolerance: float = 0.0

    @property
    def has_fixed_position(self) -> bool:
        return self.x is not None and self.y is not None


@dataclasses.dataclass(frozen=True)
class ConnectivityConfig:
    """Lane-graph tuning parameters.

    The first five fields are the designer-facing knobs; the rest are the
    constants the lane, repair and resilience stages are built around.
    """

    min_connections: int = 1
    max_connections: int = 8
    max_distance: float = 10.0
    distance_decay_factor: float = 0.8
    use_tiered_connectivity: bool = True

    # ---- neighbor graph ----
    neighbor_count: int = 6
    neighbor_cap_fraction: float = 2.0    # × radius; 2.0 = galaxy diameter
    core_extra_neighbors: int = 2         # tiered strategy only

    # ---- lane builder ----
    lane_distance_scale: float = 1.5      # base max = max(max_distance × this,
    lane_radius_fraction: float = 0.25    #                radius × this)
    guaranteed_neighbors: int = 2
    diversity_bonus: float = 1.5
    origin_multiplier: float = 2.5
    core_multiplier: float = 2.0
    rim_multiplier: float = 0.4
    core_radius_fraction: float = 0.6

    # ---- connectivity guarantor ----
    isolated_fallback_fraction: float = 0.3

    # ---- resilience augmenter ----
    redundancy_cap: int = 40
    redundancy_distance_fraction: float = 0.4
    hub_weight: float = 0.2
    vulnerable_degree: int = 2
    outlying_fraction: float = 0.6
    outlying_degree: int = 4


@dataclasses.dataclass(frozen=True)
class GalaxyConfig:
    """Immutable input to ``generate()``."""

    seed: int = 1111111111
    radius: float = 500.0
    star_system_count: int = 400
    anomaly_count: int = 25
    min_distance: float = 2.5
    connectivity: ConnectivityConfig = dataclasses.field(default_factory=ConnectivityConfig)
    fixed_systems: Tuple[FixedSystemSpec, ...] = ()

    # ---- anomaly separation ----
    anomaly_system_distance: float = 3.0
    anomaly_anomaly_distance: float = 2.0

    # ---- rejection sampling ----
    site_attempts: int = 500
    anomaly_attempts: int = 100
    site_starvation: StarvationPolicy = StarvationPolicy.DROP
    anomaly_starvation: StarvationPolicy = StarvationPolicy.ACCEPT

    # ---- travel ----
    ly_per_turn: float = 5.0

    def validate(self) -> None:
        """Raise ``ConfigError`` describing the first problem found."""
        if not self.radius > 0:
            raise ConfigError(f"radius must be positive, got {self.radius}")
        if self.star_system_count < 1:
            raise ConfigError(
                f"star_system_count must be at least 1, got {self.star_system_count}"
            )
        if self.anomaly_count < 0:
            raise ConfigError(f"anomaly_count must be >= 0, got {self.anomaly_count}")
        if self.min_distance < 0:
            raise ConfigError(f"min_distance must be >= 0, got {self.min_distance}")
        if self.site_attempts < 1 or self.anomaly_attempts < 1:
            raise ConfigError("attempt caps must be at least 1")
        if not self.ly_per_turn > 0:
            raise ConfigError(f"ly_per_turn must be positive, got {self.ly_per_turn}")

        conn = self.connectivity
        if conn.min_connections < 0 or conn.max_connections < conn.min_connections:
            raise ConfigError(
                f"invalid connection bounds [{conn.min_connections}, {conn.max_connections}]"
            )
        if not conn.max_distance > 0:
            raise ConfigError(f"max_distance must be positive, got {conn.max_distance}")
        if conn.distance_decay_factor < 0:
            raise ConfigError("distance_decay_factor must be >= 0")
        if conn.neighbor_count < 1:
            raise ConfigError("neighbor_count must be at least 1")

        if len(self.fixed_systems) > self.star_system_count:
            raise ConfigError(
                f"{len(self.fixed_systems)} fixed systems exceed "
                f"star_system_count={self.star_system_count}"
            )
        seen: set = set()
        for spec in self.fixed_systems:
            if spec.id in seen:
                raise ConfigError(f"duplicate fixed system id {spec.id!r}")
            seen.add(spec.id)
            if not spec.has_fixed_position and spec.target_distance is None:
                raise ConfigError(
                    f"fixed system {spec.id!r} needs either x/y or target_distance"
                )
            if spec.tolerance < 0:
                raise ConfigError(f"fixed system {spec.id!r} has negative tolerance")
            # only exact coordinates may lie outside the disk
            if (not spec.has_fixed_position
                    and spec.target_distance + spec.tolerance > self.radius):
                raise ConfigError(
                    f"fixed system {spec.id!r} band {spec.target_distance}±{spec.tolerance} "
                    f"exceeds radius {self.radius}"
                )

    # ------------------------------------------------------------------
    # Plain-dict round trip (params.json)
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        return _plain(dataclasses.asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "GalaxyConfig":
        """Inverse of ``to_dict``; unknown keys are ignored."""
        names = {f.name for f in dataclasses.fields(cls)}
        kwargs = {k: v for k, v in data.items() if k in names}

        conn_names = {f.name for f in dataclasses.fields(ConnectivityConfig)}
        conn = kwargs.get("connectivity") or {}
        if isinstance(conn, Mapping):
            kwargs["connectivity"] = ConnectivityConfig(
                **{k: v for k, v in conn.items() if k in conn_names}
            )

        fixed = []
        for spec in kwargs.get("fixed_systems") or ():
            if isinstance(spec, Mapping):
                spec = dict(spec)
                spec["system_class"] = SystemClass(spec.get("system_class", "rim"))
                spec = FixedSystemSpec(**spec)
            fixed.append(spec)
        kwargs["fixed_systems"] = tuple(fixed)

        for key in ("site_starvation", "anomaly_starvation"):
            if key in kwargs:
                kwargs[key] = StarvationPolicy(kwargs[key])
        return cls(**kwargs)


def _plain(value: Any) -> Any:
    """Recursively replace enum members with their values."""
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Generated entities
# ---------------------------------------------------------------------------

@dataclasses.dataclass
class Site:
    """Accepted spatial sample awaiting (or holding) a star system."""

    x: float
    y: float
    neighbors: List[int] = dataclasses.field(default_factory=list)
    system_id: Optional[str] = None
    has_system: bool = False


@dataclasses.dataclass
class Resources:
    minerals: int = 0
    energy: int = 0
    research: int = 0


@dataclasses.dataclass
class StarSystem:
    id: str
    name: str
    x: float
    y: float
    system_class: SystemClass
    is_fixed: bool = False
    explored: bool = False
    population: int = 0
    gdp: float = 0.0
    resources: Resources = dataclasses.field(default_factory=Resources)
    connections: List[str] = dataclasses.field(default_factory=list)
    has_detail: bool = False

    @property
    def r(self) -> float:
        return math.hypot(self.x, self.y)


@dataclasses.dataclass
class WarpLane:
    id: str
    source: str
    target: str
    distance: float
    travel_time: int
    discovered: bool = False


@dataclasses.dataclass(frozen=True)
class AnomalyEffect:
    kind: str
    magnitude: float


ANOMALY_EFFECTS: Dict[AnomalyCategory, AnomalyEffect] = {
    AnomalyCategory.NEBULA:    AnomalyEffect("sensor_interference", -0.5),
    AnomalyCategory.BLACKHOLE: AnomalyEffect("gravity_well", 2.0),
    AnomalyCategory.WORMHOLE:  AnomalyEffect("fast_travel", 0.1),
    AnomalyCategory.ARTIFACT:  AnomalyEffect("research_bonus", 1.5),
    AnomalyCategory.RESOURCE:  AnomalyEffect("mining_bonus", 2.0),
}


@dataclasses.dataclass
class Anomaly:
    id: str
    category: AnomalyCategory
    name: str
    x: float
    y: float
    discovered: bool = False

    @property
    def effect(self) -> AnomalyEffect:
        return ANOMALY_EFFECTS[self.category]


@dataclasses.dataclass(frozen=True)
class GalaxyBounds:
    min_x: float
    max_x: float
    min_y: float
    max_y: float
    radius: float


@dataclasses.dataclass
class Galaxy:
    config: GalaxyConfig
    systems: List[StarSystem]
    lanes: List[WarpLane]
    anomalies: List[Anomaly]
    bounds: GalaxyBounds

    def system(self, system_id: str) -> StarSystem:
        for system in self.systems:
            if system.id == system_id:
                return system
        raise KeyError(system_id)

    def to_frames(self) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
        """Return ``(systems_df, lanes_df, anomalies_df)``.

        ``lanes_df`` carries both the string endpoint ids and the integer row
        indices of those endpoints in ``systems_df`` (``source_idx`` /
        ``target_idx``), which is what the debug plot draws from.
        """
        index = {s.id: i for i, s in enumerate(self.systems)}

        systems_df = pd.DataFrame({
            "id":           [s.id for s in self.systems],
            "name":         [s.name for s in self.systems],
            "x":            [s.x for s in self.systems],
            "y":            [s.y for s in self.systems],
            "r":            [s.r for s in self.systems],
            "system_class": [s.system_class.value for s in self.systems],
            "is_fixed":     [s.is_fixed for s in self.systems],
            "explored":     [s.explored for s in self.systems],
            "population":   [s.population for s in self.systems],
            "gdp":          [s.gdp for s in self.systems],
            "minerals":     [s.resources.minerals for s in self.systems],
            "energy":       [s.resources.energy for s in self.systems],
            "research":     [s.resources.research for s in self.systems],
            "degree":       [len(s.connections) for s in self.systems],
            "has_detail":   [s.has_detail for s in self.systems],
        })

        lanes_df = pd.DataFrame({
            "id":          [lane.id for lane in self.lanes],
            "source":      [lane.source for lane in self.lanes],
            "target":      [lane.target for lane in self.lanes],
            "source_idx":  pd.Series([index[lane.source] for lane in self.lanes], dtype="int64"),
            "target_idx":  pd.Series([index[lane.target] for lane in self.lanes], dtype="int64"),
            "distance":    pd.Series([lane.distance for lane in self.lanes], dtype="float64"),
            "travel_time": pd.Series([lane.travel_time for lane in self.lanes], dtype="int64"),
            "discovered":  pd.Series([lane.discovered for lane in self.lanes], dtype="bool"),
        })

        anomalies_df = pd.DataFrame({
            "id":               [a.id for a in self.anomalies],
            "category":         [a.category.value for a in self.anomalies],
            "name":             [a.name for a in self.anomalies],
            "x":                pd.Series([a.x for a in self.anomalies], dtype="float64"),
            "y":                pd.Series([a.y for a in self.anomalies], dtype="float64"),
            "discovered":       pd.Series([a.discovered for a in self.anomalies], dtype="bool"),
            "effect_kind":      [a.effect.kind for a in self.anomalies],
            "effect_magnitude": pd.Series([a.effect.magnitude for a in self.anomalies],
                                          dtype="float64"),
        })
        return systems_df, lanes_df, anomalies_df


# ---------------------------------------------------------------------------
# Detail catalog collaborator
# ---------------------------------------------------------------------------

@dataclasses.dataclass(frozen=True)
class SystemDetail:
    """Summary of a hand-authored system description."""

    star_type: str
    planet_count: int = 0
    moon_count: int = 0
    asteroid_count: int = 0


class DetailCatalog(Protocol):
    def detail_for(self, system_id: str) -> Optional[SystemDetail]: ...


class StaticDetailCatalog:
    """Dict-backed ``DetailCatalog``."""

    def __init__(self, details: Optional[Mapping[str, SystemDetail]] = None) -> None:
        self._details = dict(details or {})

    def detail_for(self, system_id: str) -> Optional[SystemDetail]:
        return self._details.get(system_id)
