"""Fleet registry: the fixed catalog of monitored machines.

The fleet is 14 machines spread over four plants. Every machine is either a
Slitter or an Inspection unit. The catalog is deterministic; the simulator
perturbs copies of it, it never adds or removes machines.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

PLANTS = ["Plant A", "Plant B", "Plant C", "Plant D"]
MACHINE_TYPES = ["Slitter", "Inspection"]
ALL_TYPES = "All"  # Selection sentinel, never a machine type

CRITICAL_THRESHOLD = 50.0
WARNING_THRESHOLD = 75.0


class MachineStatus(Enum):
    """Health classification of a machine."""

    HEALTHY = "Healthy"
    WARNING = "Warning"
    CRITICAL = "Critical"


def status_for_health(health_score: float) -> MachineStatus:
    """Classify a health score (0-100) into a status."""
    if health_score < CRITICAL_THRESHOLD:
        return MachineStatus.CRITICAL
    if health_score < WARNING_THRESHOLD:
        return MachineStatus.WARNING
    return MachineStatus.HEALTHY


@dataclass
class Machine:
    """A single monitored machine.

    ``status`` is not stored: it is always computed from ``health_score``.
    """

    machine_id: int
    plant: str
    type: str
    health_score: float
    temperature: float
    vibration: float
    load: float
    rpm: float
    current: float
    energy_kw: float
    idle_time_pct: float
    rul_days: float

    @property
    def status(self) -> MachineStatus:
        return status_for_health(self.health_score)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-friendly dict including the derived status."""
        data = asdict(self)
        data["status"] = self.status.value
        return data


# machine_id, plant, type, health, temp, vibration, load, rpm, current, energy_kw, idle_pct, rul_days
_CATALOG = [
    # Plant A - 2 Slitter, 2 Inspection
    (1, "Plant A", "Slitter", 90, 65, 0.3, 75, 2200, 32, 10.2, 12, 180),
    (2, "Plant A", "Slitter", 85, 68, 0.4, 80, 2150, 35, 11.5, 15, 165),
    (3, "Plant A", "Inspection", 71, 72, 0.6, 85, 2050, 38, 13.8, 18, 95),
    (4, "Plant A", "Inspection", 88, 63, 0.35, 70, 2300, 30, 9.8, 14, 200),
    # Plant B - 2 Slitter, 1 Inspection
    (5, "Plant B", "Slitter", 45, 78, 1.2, 90, 1900, 42, 16.5, 25, 25),
    (6, "Plant B", "Slitter", 92, 64, 0.28, 73, 2250, 31, 10.1, 11, 210),
    (7, "Plant B", "Inspection", 76, 70, 0.55, 82, 2100, 36, 12.8, 17, 120),
    # Plant C - 3 Slitter, 2 Inspection
    (8, "Plant C", "Slitter", 89, 66, 0.32, 76, 2180, 33, 10.5, 13, 175),
    (9, "Plant C", "Slitter", 58, 75, 0.95, 88, 1950, 40, 15.2, 22, 45),
    (10, "Plant C", "Slitter", 94, 62, 0.25, 68, 2320, 29, 9.5, 10, 220),
    (11, "Plant C", "Inspection", 73, 71, 0.58, 84, 2080, 37, 13.2, 16, 110),
    (12, "Plant C", "Inspection", 87, 67, 0.38, 77, 2160, 34, 11.1, 14, 185),
    # Plant D - 1 Slitter, 1 Inspection
    (13, "Plant D", "Slitter", 52, 76, 1.1, 89, 1920, 41, 15.8, 24, 35),
    (14, "Plant D", "Inspection", 91, 65, 0.3, 74, 2200, 32, 10.3, 12, 195),
]


def create_fleet() -> List[Machine]:
    """Build a fresh copy of the fleet catalog, ordered by machine id."""
    return [
        Machine(
            machine_id=row[0],
            plant=row[1],
            type=row[2],
            health_score=float(row[3]),
            temperature=float(row[4]),
            vibration=float(row[5]),
            load=float(row[6]),
            rpm=float(row[7]),
            current=float(row[8]),
            energy_kw=float(row[9]),
            idle_time_pct=float(row[10]),
            rul_days=float(row[11]),
        )
        for row in _CATALOG
    ]


def find_machine(machines: List[Machine], machine_id: int) -> Optional[Machine]:
    """Look up a machine by id, ``None`` when absent."""
    for machine in machines:
        if machine.machine_id == machine_id:
            return machine
    return None
