"""Tests for configuration loading."""

import pytest

from faultzero_sim.config import Config


class TestConfig:
    """Tests for Config."""

    def test_defaults(self):
        config = Config.default()

        assert config.simulation.tick_interval_ms == 2000
        assert config.simulation.simulated_mode is False
        assert config.simulation.sensor_history_days == 7
        assert config.session.default_user_id == "u-op"
        assert config.session.preferences_path is None
        assert config.mqtt.broker == "localhost"

    def test_yaml_roundtrip(self, tmp_path):
        config = Config.default()
        config.simulation.tick_interval_ms = 500
        config.simulation.random_seed = 42
        config.session.default_user_id = "u-admin"
        config.uns.site = "north"

        path = tmp_path / "nested" / "config.yaml"
        config.to_yaml(path)
        loaded = Config.from_yaml(path)

        assert loaded == config

    def test_missing_file_gives_defaults(self, tmp_path):
        assert Config.from_yaml(tmp_path / "absent.yaml") == Config.default()

    def test_partial_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("simulation:\n  simulated_mode: 'yes'\n")

        config = Config.from_yaml(path)

        assert config.simulation.simulated_mode is True
        assert config.simulation.tick_interval_ms == 2000
        assert config.mqtt.port == 1883

    def test_empty_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert Config.from_yaml(path) == Config.default()

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("MQTT_BROKER", "broker.local")
        monkeypatch.setenv("MQTT_PORT", "8883")
        monkeypatch.setenv("FAULTZERO_TICK_MS", "250")
        monkeypatch.setenv("FAULTZERO_SEED", "7")
        monkeypatch.setenv("FAULTZERO_SIMULATED", "true")
        monkeypatch.setenv("FAULTZERO_USER", "u-sup")

        config = Config.from_env()

        assert config.mqtt.broker == "broker.local"
        assert config.mqtt.port == 8883
        assert config.simulation.tick_interval_ms == 250
        assert config.simulation.random_seed == 7
        assert config.simulation.simulated_mode is True
        assert config.session.default_user_id == "u-sup"

    @pytest.mark.parametrize("value,expected", [("0", False), ("off", False), ("1", True), ("ON", True)])
    def test_env_simulated_flag(self, monkeypatch, value, expected):
        monkeypatch.setenv("FAULTZERO_SIMULATED", value)

        assert Config.from_env().simulation.simulated_mode is expected

    def test_env_applies_on_top_of_file(self, tmp_path, monkeypatch):
        path = tmp_path / "config.yaml"
        path.write_text("simulation:\n  tick_interval_ms: 900\n  random_seed: 3\n")
        monkeypatch.setenv("FAULTZERO_SEED", "11")
        for name in ("FAULTZERO_TICK_MS", "FAULTZERO_SIMULATED", "FAULTZERO_USER", "MQTT_BROKER", "MQTT_PORT"):
            monkeypatch.delenv(name, raising=False)

        config = Config.from_env(Config.from_yaml(path))

        assert config.simulation.tick_interval_ms == 900
        assert config.simulation.random_seed == 11
