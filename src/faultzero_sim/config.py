"""Configuration management for the telemetry engine."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml


@dataclass
class MQTTConfig:
    """MQTT broker configuration (only used when publishing snapshots)."""

    broker: str = "localhost"
    port: int = 1883
    username: str = ""
    password: str = ""
    client_id: str = "faultzero-sim"
    qos: int = 1


@dataclass
class UNSConfig:
    """Unified Namespace topic root for published snapshots."""

    enterprise: str = "faultzero"
    site: str = "fleet"
    topic_prefix: str = "umh/v1"


@dataclass
class SimulationConfig:
    """Simulation parameters."""

    tick_interval_ms: int = 2000
    random_seed: Optional[int] = None
    simulated_mode: bool = False
    sensor_history_days: int = 7


@dataclass
class SessionConfig:
    """Initial user and where view preferences are stored."""

    default_user_id: str = "u-op"
    preferences_path: Optional[str] = None  # None keeps preferences in memory


def as_bool(value: Any) -> bool:
    """Interpret YAML, environment and preference flags such as "false" or "on"."""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class Config:
    """Main configuration container."""

    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    uns: UNSConfig = field(default_factory=UNSConfig)
    simulation: SimulationConfig = field(default_factory=SimulationConfig)
    session: SessionConfig = field(default_factory=SessionConfig)

    @classmethod
    def default(cls) -> "Config":
        """Create the default configuration."""
        return cls()

    @classmethod
    def from_yaml(cls, config_path: Path) -> "Config":
        """Load configuration from YAML file."""
        if not config_path.exists():
            return cls.default()

        with open(config_path) as f:
            data = yaml.safe_load(f) or {}

        return cls._from_dict(data)

    @classmethod
    def from_env(cls, config: Optional["Config"] = None) -> "Config":
        """Apply environment variable overrides on top of ``config`` (or defaults)."""
        config = config or cls.default()

        # MQTT settings
        config.mqtt.broker = os.getenv("MQTT_BROKER", config.mqtt.broker)
        config.mqtt.port = int(os.getenv("MQTT_PORT", config.mqtt.port))
        config.mqtt.username = os.getenv("MQTT_USERNAME", config.mqtt.username)
        config.mqtt.password = os.getenv("MQTT_PASSWORD", config.mqtt.password)

        # Simulation settings
        tick_ms = os.getenv("FAULTZERO_TICK_MS")
        if tick_ms:
            config.simulation.tick_interval_ms = int(tick_ms)
        seed = os.getenv("FAULTZERO_SEED")
        if seed:
            config.simulation.random_seed = int(seed)
        simulated = os.getenv("FAULTZERO_SIMULATED")
        if simulated is not None:
            config.simulation.simulated_mode = as_bool(simulated)

        # Session settings
        config.session.default_user_id = os.getenv("FAULTZERO_USER", config.session.default_user_id)

        return config

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create config from dictionary."""
        config = cls.default()

        if "mqtt" in data:
            mqtt_data = data["mqtt"]
            config.mqtt = MQTTConfig(
                broker=mqtt_data.get("broker", config.mqtt.broker),
                port=mqtt_data.get("port", config.mqtt.port),
                username=mqtt_data.get("username", config.mqtt.username),
                password=mqtt_data.get("password", config.mqtt.password),
                client_id=mqtt_data.get("client_id", config.mqtt.client_id),
                qos=mqtt_data.get("qos", config.mqtt.qos),
            )

        if "uns" in data:
            uns_data = data["uns"]
            config.uns = UNSConfig(
                enterprise=uns_data.get("enterprise", config.uns.enterprise),
                site=uns_data.get("site", config.uns.site),
                topic_prefix=uns_data.get("topic_prefix", config.uns.topic_prefix),
            )

        if "simulation" in data:
            sim_data = data["simulation"]
            config.simulation = SimulationConfig(
                tick_interval_ms=sim_data.get(
                    "tick_interval_ms", config.simulation.tick_interval_ms
                ),
                random_seed=sim_data.get("random_seed"),
                simulated_mode=as_bool(
                    sim_data.get("simulated_mode", config.simulation.simulated_mode)
                ),
                sensor_history_days=sim_data.get(
                    "sensor_history_days", config.simulation.sensor_history_days
                ),
            )

        if "session" in data:
            session_data = data["session"]
            config.session = SessionConfig(
                default_user_id=session_data.get(
                    "default_user_id", config.session.default_user_id
                ),
                preferences_path=session_data.get("preferences_path"),
            )

        return config

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file."""
        data = {
            "mqtt": {
                "broker": self.mqtt.broker,
                "port": self.mqtt.port,
                "username": self.mqtt.username,
                "password": self.mqtt.password,
                "client_id": self.mqtt.client_id,
                "qos": self.mqtt.qos,
            },
            "uns": {
                "enterprise": self.uns.enterprise,
                "site": self.uns.site,
                "topic_prefix": self.uns.topic_prefix,
            },
            "simulation": {
                "tick_interval_ms": self.simulation.tick_interval_ms,
                "random_seed": self.simulation.random_seed,
                "simulated_mode": self.simulation.simulated_mode,
                "sensor_history_days": self.simulation.sensor_history_days,
            },
            "session": {
                "default_user_id": self.session.default_user_id,
                "preferences_path": self.session.preferences_path,
            },
        }

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)
