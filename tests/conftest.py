"""Shared fixtures for the galaxy generator tests."""

import networkx as nx
import pytest

from galaxy_model import FixedSystemSpec, GalaxyConfig, StarSystem, SystemClass
from galaxygen import generate, standard_config


SOL = FixedSystemSpec("sol", "Sol System", SystemClass.ORIGIN, x=0.0, y=0.0)


@pytest.fixture
def small_config():
    """A quick 60-system galaxy with the origin system pinned at (0, 0)."""
    return GalaxyConfig(
        seed=42,
        radius=100.0,
        star_system_count=60,
        anomaly_count=8,
        min_distance=2.0,
        fixed_systems=(SOL,),
    )


@pytest.fixture(scope="session")
def standard_galaxy():
    return generate(standard_config())


def make_systems(points, system_class=SystemClass.CORE):
    """StarSystems named by the keys of *points* ({id: (x, y)})."""
    return [
        StarSystem(id=sid, name=sid.upper(), x=float(x), y=float(y), system_class=system_class)
        for sid, (x, y) in points.items()
    ]


def lane_graph(galaxy):
    G = nx.Graph()
    G.add_nodes_from(s.id for s in galaxy.systems)
    G.add_edges_from((lane.source, lane.target) for lane in galaxy.lanes)
    return G
