"""Tests for configuration validation, serialization and tabular export."""

import dataclasses
import json

import pytest

from conftest import SOL
from galaxy_model import (
    AnomalyCategory,
    ConfigError,
    ConnectivityConfig,
    FixedSystemSpec,
    GalaxyConfig,
    StarvationPolicy,
    SystemClass,
)
from galaxygen import STANDARD_FIXED_SYSTEMS, generate, standard_config


class TestValidate:
    """``GalaxyConfig.validate`` rejects unusable configurations."""

    def test_standard_config_valid(self):
        standard_config().validate()

    @pytest.mark.parametrize("changes", [
        {"radius": 0.0},
        {"radius": -5.0},
        {"star_system_count": 0},
        {"anomaly_count": -1},
        {"min_distance": -0.1},
        {"site_attempts": 0},
        {"anomaly_attempts": 0},
        {"ly_per_turn": 0.0},
    ])
    def test_bad_scalars(self, changes):
        with pytest.raises(ConfigError):
            dataclasses.replace(GalaxyConfig(), **changes).validate()

    @pytest.mark.parametrize("conn", [
        ConnectivityConfig(min_connections=5, max_connections=3),
        ConnectivityConfig(min_connections=-1),
        ConnectivityConfig(max_distance=0.0),
        ConnectivityConfig(distance_decay_factor=-1.0),
        ConnectivityConfig(neighbor_count=0),
    ])
    def test_bad_connectivity(self, conn):
        with pytest.raises(ConfigError):
            GalaxyConfig(connectivity=conn).validate()

    def test_too_many_fixed_systems(self):
        with pytest.raises(ConfigError, match="exceed"):
            GalaxyConfig(star_system_count=3, fixed_systems=STANDARD_FIXED_SYSTEMS).validate()

    def test_duplicate_fixed_ids(self):
        with pytest.raises(ConfigError, match="duplicate"):
            GalaxyConfig(fixed_systems=(SOL, SOL)).validate()

    def test_fixed_without_position(self):
        lost = FixedSystemSpec("lost", "Lost")
        with pytest.raises(ConfigError, match="target_distance"):
            GalaxyConfig(fixed_systems=(lost,)).validate()

    def test_negative_tolerance(self):
        spec = FixedSystemSpec("x", "X", target_distance=10.0, tolerance=-1.0)
        with pytest.raises(ConfigError):
            GalaxyConfig(fixed_systems=(spec,)).validate()

    def test_polar_band_outside_disk(self):
        """A polar band must fit inside the disk; exact coordinates need not."""
        config = dataclasses.replace(standard_config(), radius=300.0)
        with pytest.raises(ConfigError, match="aspida"):
            config.validate()

    def test_polar_band_on_rim_edge(self):
        edge = FixedSystemSpec("edge", "Edge", target_distance=90.0, tolerance=10.0)
        far = FixedSystemSpec("far", "Far", x=400.0, y=0.0)
        GalaxyConfig(radius=100.0, fixed_systems=(edge, far)).validate()

    def test_config_error_is_value_error(self):
        assert issubclass(ConfigError, ValueError)


class TestSerialization:
    """params.json round trip."""

    def test_json_round_trip(self):
        config = dataclasses.replace(
            standard_config(seed=99),
            anomaly_starvation=StarvationPolicy.DROP,
            connectivity=ConnectivityConfig(use_tiered_connectivity=False, neighbor_count=4),
        )
        data = json.loads(json.dumps(config.to_dict()))
        assert GalaxyConfig.from_dict(data) == config

    def test_plain_values(self):
        data = standard_config().to_dict()
        assert data["site_starvation"] == "drop"
        assert data["fixed_systems"][0]["system_class"] == "origin"
        assert isinstance(data["fixed_systems"], list)
        assert data["connectivity"]["max_distance"] == 10.0

    def test_unknown_keys_ignored(self):
        config = GalaxyConfig.from_dict({"seed": 3, "colour": "red",
                                         "connectivity": {"decay": 1, "max_distance": 4.0}})
        assert config.seed == 3
        assert config.connectivity.max_distance == 4.0
        assert config.fixed_systems == ()


class TestGalaxy:
    """Output model helpers."""

    @pytest.fixture
    def galaxy(self, small_config):
        return generate(small_config)

    def test_frames(self, galaxy):
        systems_df, lanes_df, anomalies_df = galaxy.to_frames()
        assert len(systems_df) == len(galaxy.systems)
        assert len(lanes_df) == len(galaxy.lanes)
        assert len(anomalies_df) == len(galaxy.anomalies)
        assert {"id", "x", "y", "r", "system_class", "degree", "is_fixed"} <= set(systems_df)
        assert {"source_idx", "target_idx", "distance", "travel_time"} <= set(lanes_df)
        assert {"category", "effect_kind", "effect_magnitude"} <= set(anomalies_df)
        assert systems_df["degree"].sum() == 2 * len(lanes_df)

    def test_lane_indices_match_ids(self, galaxy):
        systems_df, lanes_df, _ = galaxy.to_frames()
        ids = systems_df["id"].tolist()
        for row in lanes_df.itertuples(index=False):
            assert ids[row.source_idx] == row.source
            assert ids[row.target_idx] == row.target

    def test_system_lookup(self, galaxy):
        assert galaxy.system("sol").system_class is SystemClass.ORIGIN
        with pytest.raises(KeyError):
            galaxy.system("nowhere")

    def test_empty_frames(self):
        config = GalaxyConfig(star_system_count=1, anomaly_count=0)
        _, lanes_df, anomalies_df = generate(config).to_frames()
        assert lanes_df.empty and anomalies_df.empty
        assert lanes_df["source_idx"].dtype == "int64"

    def test_anomaly_effects(self, galaxy):
        for anomaly in galaxy.anomalies:
            if anomaly.category is AnomalyCategory.NEBULA:
                assert anomaly.effect.kind == "sensor_interference"
                assert anomaly.effect.magnitude == -0.5
            if anomaly.category is AnomalyCategory.WORMHOLE:
                assert anomaly.effect.kind == "fast_travel"


def test_fixed_spec_position_rule():
    assert SOL.has_fixed_position
    assert not FixedSystemSpec("p", "P", target_distance=5.0).has_fixed_position
