"""Data generators for machine telemetry, anomalies and alerts.

This module provides the synthetic data behind the dashboard:

- **Random walk**: bounded per-tick perturbation of live machine readings
- **Sensor history**: hourly time series with daily, weekly and trend patterns
- **Anomalies**: status-dependent anomaly records for a single machine
- **Alerts**: health, maintenance and energy alerts for a set of machines
- **RUL prediction**: remaining useful life snapshot for a single machine

All randomness goes through an injectable ``random.Random`` so callers can
seed it; all wall-clock reads go through an injectable clock.
"""

import logging
import math
import random
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .fleet import Machine, MachineStatus, find_machine

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


# =============================================================================
# Random-Walk Simulation
# =============================================================================


@dataclass(frozen=True)
class WalkBounds:
    """Valid range and maximum step for one randomly walking field."""

    min_value: float
    max_value: float
    step: float

    def apply(self, value: float, rng: random.Random) -> float:
        """Move ``value`` by up to half a step either way, clamped to range."""
        change = (rng.random() - 0.5) * self.step
        return max(self.min_value, min(self.max_value, value + change))


RANDOM_WALK_BOUNDS: Dict[str, WalkBounds] = {
    "health_score": WalkBounds(40.0, 95.0, 2.0),
    "temperature": WalkBounds(60.0, 80.0, 1.0),
    "energy_kw": WalkBounds(8.0, 16.0, 0.5),
    "idle_time_pct": WalkBounds(10.0, 30.0, 1.0),
    "vibration": WalkBounds(0.1, 2.0, 0.1),
    "load": WalkBounds(40.0, 95.0, 2.0),
    "rpm": WalkBounds(1000.0, 3500.0, 50.0),
    "current": WalkBounds(20.0, 60.0, 1.0),
}

RUL_DECAY_PER_TICK = 0.1  # Upper bound, days


def simulate_machine_updates(machines: List[Machine], rng: random.Random) -> List[Machine]:
    """Advance every machine by one random-walk step.

    Returns new ``Machine`` objects; the input list is left untouched so the
    caller can swap the whole set in one assignment. Status follows the new
    health score automatically.
    """
    updated = []
    for machine in machines:
        changes: Dict[str, float] = {
            name: bounds.apply(getattr(machine, name), rng)
            for name, bounds in RANDOM_WALK_BOUNDS.items()
        }
        changes["rul_days"] = max(0.0, machine.rul_days - rng.random() * RUL_DECAY_PER_TICK)
        updated.append(replace(machine, **changes))
    return updated


# =============================================================================
# Sensor History
# =============================================================================


@dataclass(frozen=True)
class MetricProfile:
    """Shape of a synthetic sensor signal."""

    base: float
    amplitude: float
    noise: float
    trend: float
    min_value: float
    max_value: float
    unit: str = ""


METRIC_PROFILES: Dict[str, MetricProfile] = {
    "temperature": MetricProfile(65.0, 5.0, 2.0, 0.05, 50.0, 100.0, "°C"),
    "vibration": MetricProfile(0.5, 0.2, 0.1, 0.01, 0.1, 3.0, "mm/s"),
    "load": MetricProfile(75.0, 10.0, 5.0, 0.1, 40.0, 95.0, "%"),
    "rpm": MetricProfile(2200.0, 200.0, 50.0, 0.5, 1000.0, 3500.0, "RPM"),
    "current": MetricProfile(35.0, 5.0, 2.0, 0.02, 20.0, 60.0, "A"),
    "energy": MetricProfile(12.0, 4.0, 1.0, 0.03, 5.0, 25.0, "kW"),
}

# Known degradation per machine; 1.0 is nominal
MACHINE_HEALTH_FACTORS: Dict[int, float] = {
    1: 1.0,
    2: 1.0,
    3: 1.2,
    4: 1.0,
    5: 1.5,
    6: 1.0,
    7: 1.1,
    8: 1.0,
    9: 1.3,
    10: 1.0,
    11: 1.2,
    12: 1.0,
    13: 1.4,
    14: 1.0,
}

SPIKE_PROBABILITY = 0.005
WORKING_HOURS = (8, 18)  # Inclusive
OFF_HOURS_FACTOR = 0.7
WEEKEND_FACTOR = 0.8


@dataclass
class SensorPoint:
    """One hourly sensor reading."""

    timestamp: datetime
    value: float

    def to_dict(self) -> Dict[str, Any]:
        return {"timestamp": self.timestamp.isoformat(), "value": self.value}


class SensorHistoryGenerator:
    """Synthesizes hourly sensor history for one machine and metric."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Optional[Clock] = None):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now

    @staticmethod
    def health_factor(machine_id: int) -> float:
        return MACHINE_HEALTH_FACTORS.get(machine_id, 1.0)

    def generate(self, machine_id: int = 1, metric: str = "temperature", days: int = 7) -> List[SensorPoint]:
        """Generate ``days * 24`` hourly points, oldest first.

        An unknown metric yields an empty history.
        """
        if days < 1:
            raise ValueError(f"Sensor history needs at least one day, got {days}")

        profile = METRIC_PROFILES.get(metric)
        if profile is None:
            logger.warning(f"Unknown sensor metric '{metric}'")
            return []

        health_factor = self.health_factor(machine_id)
        total_points = days * 24
        now = self.clock()
        points = []

        for i in range(total_points):
            timestamp = now - timedelta(hours=total_points - i)
            hour = timestamp.hour

            working_hours_factor = 1.0 if WORKING_HOURS[0] <= hour <= WORKING_HOURS[1] else OFF_HOURS_FACTOR
            weekend_factor = WEEKEND_FACTOR if timestamp.weekday() >= 5 else 1.0
            daily_cycle = math.sin(hour / 24 * math.pi * 2)

            trend = (i / total_points) * profile.trend * health_factor
            noise = (self.rng.random() - 0.5) * profile.noise
            spike = self.rng.random() * profile.amplitude if self.rng.random() < SPIKE_PROBABILITY else 0.0

            value = (
                profile.base * health_factor
                + daily_cycle * profile.amplitude * working_hours_factor * weekend_factor
                + trend
                + noise
                + spike
            )
            value = max(profile.min_value, min(profile.max_value, value))
            points.append(SensorPoint(timestamp=timestamp, value=value))

        return points


# =============================================================================
# Anomalies
# =============================================================================


# Per status tier: field -> (start, spread). Values are drawn from
# start + U(0,1) * spread; rpm spreads downwards.
ANOMALY_RANGES: Dict[MachineStatus, Dict[str, tuple]] = {
    MachineStatus.CRITICAL: {
        "temperature": (78.0, 8.0),
        "vibration": (1.2, 0.8),
        "load": (90.0, 5.0),
        "rpm": (1900.0, -200.0),
        "current": (42.0, 8.0),
        "energy_kw": (16.5, 3.0),
        "anomaly_score": (0.8, 0.2),
    },
    MachineStatus.WARNING: {
        "temperature": (72.0, 6.0),
        "vibration": (0.6, 0.4),
        "load": (85.0, 5.0),
        "rpm": (2050.0, -150.0),
        "current": (38.0, 5.0),
        "energy_kw": (13.8, 2.0),
        "anomaly_score": (0.6, 0.2),
    },
    MachineStatus.HEALTHY: {
        "temperature": (65.0, 5.0),
        "vibration": (0.3, 0.3),
        "load": (75.0, 5.0),
        "rpm": (2200.0, -100.0),
        "current": (32.0, 3.0),
        "energy_kw": (10.2, 1.5),
        "anomaly_score": (0.4, 0.2),
    },
}

ANOMALY_COUNTS = {
    MachineStatus.CRITICAL: 3,
    MachineStatus.WARNING: 2,
    MachineStatus.HEALTHY: 1,
}

ANOMALY_WINDOW_HOURS = 24


@dataclass
class Anomaly:
    """A detected anomaly on a machine."""

    machine_id: int
    timestamp: datetime
    temperature: float
    vibration: float
    load: float
    rpm: float
    current: float
    energy_kw: float
    anomaly_score: float
    health_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "timestamp": self.timestamp.isoformat(),
            "temperature": self.temperature,
            "vibration": self.vibration,
            "load": self.load,
            "rpm": self.rpm,
            "current": self.current,
            "energy_kw": self.energy_kw,
            "anomaly_score": self.anomaly_score,
            "health_score": self.health_score,
        }


class AnomalyGenerator:
    """Generates recent anomalies for one machine, more for sicker machines."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Optional[Clock] = None):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now

    def generate(self, machines: List[Machine], machine_id: int) -> List[Anomaly]:
        """Return anomalies for ``machine_id``, most recent first."""
        machine = find_machine(machines, machine_id)
        if machine is None:
            return []

        status = machine.status
        ranges = ANOMALY_RANGES[status]
        now = self.clock()
        anomalies = []

        for _ in range(ANOMALY_COUNTS[status]):
            hours_ago = self.rng.random() * ANOMALY_WINDOW_HOURS
            values = {
                name: start + self.rng.random() * spread
                for name, (start, spread) in ranges.items()
            }
            anomalies.append(
                Anomaly(
                    machine_id=machine_id,
                    timestamp=now - timedelta(hours=hours_ago),
                    health_score=machine.health_score,
                    **values,
                )
            )

        anomalies.sort(key=lambda a: a.timestamp, reverse=True)
        return anomalies


# =============================================================================
# Alerts
# =============================================================================


class AlertType(Enum):
    CRITICAL = "critical"
    MAINTENANCE = "maintenance"
    WARNING = "warning"
    ENERGY = "energy"


class AlertPriority(Enum):
    HIGH = "high"
    MEDIUM = "medium"


# How far back an alert of each type may be dated, for display variety
ALERT_BACKDATE_WINDOWS = {
    AlertType.CRITICAL: timedelta(hours=1),
    AlertType.MAINTENANCE: timedelta(hours=2),
    AlertType.WARNING: timedelta(hours=3),
    AlertType.ENERGY: timedelta(hours=1.5),
}

IDLE_ALERT_THRESHOLD_PCT = 20.0


@dataclass
class Alert:
    """A dashboard alert."""

    type: AlertType
    machine_id: int
    message: str
    timestamp: datetime
    priority: AlertPriority

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.type.value,
            "machine_id": self.machine_id,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
            "priority": self.priority.value,
        }


class AlertGenerator:
    """Derives alerts from machine status and idle time."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Optional[Clock] = None):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now

    def _backdated(self, now: datetime, alert_type: AlertType) -> datetime:
        return now - self.rng.random() * ALERT_BACKDATE_WINDOWS[alert_type]

    def generate(self, machines: List[Machine]) -> List[Alert]:
        """Return alerts for ``machines``, oldest first."""
        now = self.clock()
        alerts = []

        for machine in machines:
            mid = machine.machine_id
            status = machine.status

            if status == MachineStatus.CRITICAL:
                alerts.append(Alert(
                    type=AlertType.CRITICAL,
                    machine_id=mid,
                    message=f"Machine {mid} health is critical ({machine.health_score:.1f}%)",
                    timestamp=self._backdated(now, AlertType.CRITICAL),
                    priority=AlertPriority.HIGH,
                ))
                alerts.append(Alert(
                    type=AlertType.MAINTENANCE,
                    machine_id=mid,
                    message=f"Machine {mid} needs maintenance soon (RUL: {machine.rul_days:.0f} days)",
                    timestamp=self._backdated(now, AlertType.MAINTENANCE),
                    priority=AlertPriority.HIGH,
                ))
            elif status == MachineStatus.WARNING:
                alerts.append(Alert(
                    type=AlertType.WARNING,
                    machine_id=mid,
                    message=f"Machine {mid} health needs attention ({machine.health_score:.1f}%)",
                    timestamp=self._backdated(now, AlertType.WARNING),
                    priority=AlertPriority.MEDIUM,
                ))

            if machine.idle_time_pct > IDLE_ALERT_THRESHOLD_PCT:
                alerts.append(Alert(
                    type=AlertType.ENERGY,
                    machine_id=mid,
                    message=(
                        f"High idle time on Machine {mid} ({machine.idle_time_pct:.1f}%). "
                        "Energy waste detected."
                    ),
                    timestamp=self._backdated(now, AlertType.ENERGY),
                    priority=AlertPriority.MEDIUM,
                ))

        alerts.sort(key=lambda a: a.timestamp)
        return alerts


# =============================================================================
# Remaining Useful Life
# =============================================================================


@dataclass
class RulPrediction:
    """Remaining useful life snapshot for one machine."""

    machine_id: int
    rul_days: float
    health_score: float
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "rul_days": self.rul_days,
            "health_score": self.health_score,
            "last_updated": self.last_updated.isoformat(),
        }


class RulPredictor:
    """Produces a jittered RUL estimate around the machine's tracked RUL."""

    RUL_JITTER_DAYS = 5.0
    HEALTH_JITTER = 1.5

    def __init__(self, rng: Optional[random.Random] = None, clock: Optional[Clock] = None):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now

    def predict(self, machines: List[Machine], machine_id: int) -> RulPrediction:
        now = self.clock()
        machine = find_machine(machines, machine_id)
        if machine is None:
            return RulPrediction(machine_id=machine_id, rul_days=0.0, health_score=0.0, last_updated=now)

        rul = machine.rul_days + self.rng.uniform(-self.RUL_JITTER_DAYS, self.RUL_JITTER_DAYS)
        health = machine.health_score + self.rng.uniform(-self.HEALTH_JITTER, self.HEALTH_JITTER)
        return RulPrediction(
            machine_id=machine_id,
            rul_days=max(0.0, rul),
            health_score=max(0.0, min(100.0, health)),
            last_updated=now,
        )
