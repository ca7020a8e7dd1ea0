"""Aggregated dashboard views derived from a filtered machine set.

- **Dashboard summary**: status counts, averages, weekly energy
- **Energy & ROI**: daily energy, idle-time waste, efficiency scores, payback
- **Production insights**: efficiency and defect rankings plus recommendations
- **Plant overview**: per-plant statistics across every accessible machine
"""

import random
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .fleet import Machine, MachineStatus

Clock = Callable[[], datetime]


def _mean(values: List[float]) -> float:
    """Average of ``values``, 0.0 for an empty list."""
    return sum(values) / len(values) if values else 0.0


# =============================================================================
# Dashboard Summary
# =============================================================================

HOURS_PER_WEEK = 24 * 7
SAVINGS_FRACTION = 0.15

# Lower bound of each health bucket, best first; anything below is "critical"
HEALTH_BUCKETS = [
    ("excellent", 90.0),
    ("good", 75.0),
    ("fair", 60.0),
    ("poor", 50.0),
]


def health_distribution(machines: List[Machine]) -> Dict[str, int]:
    """Histogram of machines by health bucket."""
    buckets = {name: 0 for name, _ in HEALTH_BUCKETS}
    buckets["critical"] = 0
    for machine in machines:
        for name, lower in HEALTH_BUCKETS:
            if machine.health_score >= lower:
                buckets[name] += 1
                break
        else:
            buckets["critical"] += 1
    return buckets


@dataclass
class DashboardSummary:
    """Top-of-dashboard snapshot for the current view."""

    total_machines: int = 0
    healthy_machines: int = 0
    warning_machines: int = 0
    critical_machines: int = 0
    avg_health_score: float = 0.0
    avg_efficiency: float = 0.0
    recent_anomalies: int = 0
    total_batches: int = 0
    total_defects: int = 0
    total_energy_consumption: float = 0.0  # kWh per week
    potential_energy_savings: float = 0.0  # kWh per week
    machine_health_distribution: Dict[str, int] = field(default_factory=dict)
    last_updated: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_machines": self.total_machines,
            "healthy_machines": self.healthy_machines,
            "warning_machines": self.warning_machines,
            "critical_machines": self.critical_machines,
            "avg_health_score": self.avg_health_score,
            "avg_efficiency": self.avg_efficiency,
            "recent_anomalies": self.recent_anomalies,
            "total_batches": self.total_batches,
            "total_defects": self.total_defects,
            "total_energy_consumption": self.total_energy_consumption,
            "potential_energy_savings": self.potential_energy_savings,
            "machine_health_distribution": dict(self.machine_health_distribution),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


class DashboardAggregator:
    """Builds dashboard summaries and carries the anomaly counter between calls."""

    BASE_BATCHES = 45
    BASE_DEFECTS = 12

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        clock: Optional[Clock] = None,
        recent_anomalies: int = 2,
    ):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now
        self.recent_anomalies = recent_anomalies

    def aggregate(self, machines: List[Machine], simulated_mode: bool = False) -> DashboardSummary:
        statuses = [m.status for m in machines]
        weekly_energy = sum(m.energy_kw for m in machines) * HOURS_PER_WEEK

        # Independent of the anomaly generator's output
        if simulated_mode:
            self.recent_anomalies = max(0, self.recent_anomalies + self.rng.randint(-1, 1))

        return DashboardSummary(
            total_machines=len(machines),
            healthy_machines=statuses.count(MachineStatus.HEALTHY),
            warning_machines=statuses.count(MachineStatus.WARNING),
            critical_machines=statuses.count(MachineStatus.CRITICAL),
            avg_health_score=_mean([m.health_score for m in machines]),
            avg_efficiency=_mean([100 - m.idle_time_pct for m in machines]),
            recent_anomalies=self.recent_anomalies,
            total_batches=self.BASE_BATCHES + self.rng.randint(-5, 5),
            total_defects=self.BASE_DEFECTS + self.rng.randint(-3, 3),
            total_energy_consumption=weekly_energy,
            potential_energy_savings=weekly_energy * SAVINGS_FRACTION,
            machine_health_distribution=health_distribution(machines),
            last_updated=self.clock(),
        )


# =============================================================================
# Energy & ROI
# =============================================================================

IDLE_POWER_FRACTION = 0.3  # Idle draw relative to nominal
ENERGY_PRICE_USD_PER_KWH = 0.12
ENERGY_WEEKEND_FACTOR = 0.7
INITIAL_INVESTMENT_USD = 50000.0
MAINTENANCE_SAVINGS_PER_YEAR_USD = 15000.0
WEEKS_PER_YEAR = 52
DAYS_PER_MONTH = 30


@dataclass
class DailyEnergy:
    machine_id: int
    date: date
    energy_kwh: float

    def to_dict(self) -> Dict[str, Any]:
        return {"machine_id": self.machine_id, "date": self.date.isoformat(), "energy_kwh": self.energy_kwh}


@dataclass
class IdleTimeWaste:
    machine_id: int
    idle_time_pct: float
    idle_hours: float
    energy_waste_kwh: float
    potential_savings_usd: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "idle_time_pct": self.idle_time_pct,
            "idle_hours": round(self.idle_hours, 1),
            "energy_waste_kwh": round(self.energy_waste_kwh, 1),
            "potential_savings_usd": round(self.potential_savings_usd, 2),
        }


@dataclass
class EnergyEfficiency:
    machine_id: int
    energy_per_unit: float  # Lower is better
    efficiency_score: float  # Higher is better

    def to_dict(self) -> Dict[str, Any]:
        return {
            "machine_id": self.machine_id,
            "energy_per_unit": round(self.energy_per_unit, 2),
            "efficiency_score": round(self.efficiency_score, 1),
        }


@dataclass
class RoiData:
    initial_investment: float
    energy_savings_per_year: float
    maintenance_savings_per_year: float
    total_savings_per_year: float
    roi_years: float
    roi_months: float
    payback_date: date

    def to_dict(self) -> Dict[str, Any]:
        return {
            "initial_investment": self.initial_investment,
            "energy_savings_per_year": round(self.energy_savings_per_year, 2),
            "maintenance_savings_per_year": round(self.maintenance_savings_per_year, 2),
            "total_savings_per_year": round(self.total_savings_per_year, 2),
            "roi_years": round(self.roi_years, 2),
            "roi_months": round(self.roi_months, 1),
            "payback_date": self.payback_date.isoformat(),
        }


@dataclass
class EnergyData:
    daily_energy_by_machine: Dict[int, List[DailyEnergy]] = field(default_factory=dict)
    idle_time_waste: List[IdleTimeWaste] = field(default_factory=list)
    energy_efficiency: List[EnergyEfficiency] = field(default_factory=list)
    roi_data: Optional[RoiData] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "daily_energy_by_machine": [
                {"machine_id": mid, "daily_energy": [d.to_dict() for d in days]}
                for mid, days in self.daily_energy_by_machine.items()
            ],
            "idle_time_waste": [w.to_dict() for w in self.idle_time_waste],
            "energy_efficiency": [e.to_dict() for e in self.energy_efficiency],
            "roi_data": self.roi_data.to_dict() if self.roi_data else None,
        }


class EnergyAnalyzer:
    """Computes energy usage, idle waste and return on investment."""

    def __init__(self, rng: Optional[random.Random] = None, clock: Optional[Clock] = None):
        self.rng = rng or random.Random()
        self.clock = clock or datetime.now

    def daily_energy(self, machine: Machine, now: datetime, days: int = 7) -> List[DailyEnergy]:
        """Daily kWh for the last ``days`` days, oldest first."""
        series = []
        for i in range(days - 1, -1, -1):
            day = (now - timedelta(days=i)).date()
            weekend_factor = ENERGY_WEEKEND_FACTOR if day.weekday() >= 5 else 1.0
            random_factor = 0.9 + self.rng.random() * 0.2
            series.append(DailyEnergy(
                machine_id=machine.machine_id,
                date=day,
                energy_kwh=machine.energy_kw * 24 * weekend_factor * random_factor,
            ))
        return series

    @staticmethod
    def idle_waste(machine: Machine) -> IdleTimeWaste:
        """Weekly energy burned while idle and what it costs."""
        idle_hours = HOURS_PER_WEEK * (machine.idle_time_pct / 100)
        waste = machine.energy_kw * IDLE_POWER_FRACTION * idle_hours
        return IdleTimeWaste(
            machine_id=machine.machine_id,
            idle_time_pct=machine.idle_time_pct,
            idle_hours=idle_hours,
            energy_waste_kwh=waste,
            potential_savings_usd=waste * ENERGY_PRICE_USD_PER_KWH,
        )

    @staticmethod
    def efficiency(machine: Machine) -> EnergyEfficiency:
        if machine.load > 0:
            per_unit = (machine.energy_kw / (machine.load / 100)) * (1 + machine.idle_time_pct / 100)
        else:
            per_unit = 0.0
        return EnergyEfficiency(
            machine_id=machine.machine_id,
            energy_per_unit=per_unit,
            efficiency_score=100 - per_unit * 10,
        )

    @staticmethod
    def roi(waste: List[IdleTimeWaste], now: datetime) -> RoiData:
        energy_savings = sum(w.potential_savings_usd for w in waste) * WEEKS_PER_YEAR
        total_savings = energy_savings + MAINTENANCE_SAVINGS_PER_YEAR_USD
        roi_years = INITIAL_INVESTMENT_USD / total_savings
        roi_months = roi_years * 12
        return RoiData(
            initial_investment=INITIAL_INVESTMENT_USD,
            energy_savings_per_year=energy_savings,
            maintenance_savings_per_year=MAINTENANCE_SAVINGS_PER_YEAR_USD,
            total_savings_per_year=total_savings,
            roi_years=roi_years,
            roi_months=roi_months,
            payback_date=(now + timedelta(days=roi_months * DAYS_PER_MONTH)).date(),
        )

    def analyze(self, machines: List[Machine]) -> EnergyData:
        now = self.clock()
        waste = [self.idle_waste(m) for m in machines]
        return EnergyData(
            daily_energy_by_machine={m.machine_id: self.daily_energy(m, now) for m in machines},
            idle_time_waste=waste,
            energy_efficiency=[self.efficiency(m) for m in machines],
            roi_data=self.roi(waste, now),
        )


# =============================================================================
# Production Insights & Recommendations
# =============================================================================

# product -> (avg efficiency %, avg energy kWh)
PRODUCT_BASELINES = {
    "Product A": (90.0, 120.0),
    "Product B": (85.0, 135.0),
    "Product C": (78.0, 110.0),
    "Product D": (82.0, 125.0),
    "Product E": (75.0, 150.0),
}

# status -> (defect rate %, jitter half-width)
DEFECT_RATES = {
    MachineStatus.CRITICAL: (3.5, 0.4),
    MachineStatus.WARNING: (2.1, 0.3),
    MachineStatus.HEALTHY: (0.8, 0.2),
}


@dataclass
class ProductionInsights:
    efficiency_by_machine: List[Dict[str, Any]] = field(default_factory=list)
    efficiency_by_product: List[Dict[str, Any]] = field(default_factory=list)
    energy_by_product: List[Dict[str, Any]] = field(default_factory=list)
    defects_by_machine: List[Dict[str, Any]] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "efficiency_by_machine": list(self.efficiency_by_machine),
            "efficiency_by_product": list(self.efficiency_by_product),
            "energy_by_product": list(self.energy_by_product),
            "defects_by_machine": list(self.defects_by_machine),
            "recommendations": list(self.recommendations),
        }


def build_recommendations(
    machines: List[Machine],
    efficiency_by_machine: List[Dict[str, Any]],
    idle_time_waste: List[IdleTimeWaste],
) -> List[str]:
    """Ordered advice: critical machine, best performer, worst idler."""
    recommendations: List[str] = []
    if not machines:
        return recommendations

    critical = [m for m in machines if m.status == MachineStatus.CRITICAL]
    if critical:
        recommendations.append(
            f"Machine {critical[0].machine_id} is critical and needs immediate attention."
        )

    if efficiency_by_machine:
        best = max(efficiency_by_machine, key=lambda e: e["avg_efficiency"])
        recommendations.append(
            f"Machine {best['machine_id']} is performing best with {best['avg_efficiency']:.1f}% efficiency."
        )

    if idle_time_waste:
        worst = max(idle_time_waste, key=lambda w: w.idle_time_pct)
        if any(w.idle_time_pct < worst.idle_time_pct for w in idle_time_waste):
            recommendations.append(
                f"Machine {worst.machine_id} has high idle time ({worst.idle_time_pct:.1f}%). "
                "Consider workflow optimization."
            )

    return recommendations


class InsightsGenerator:
    """Production rankings and recommendations for the current view."""

    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def _jitter(self, half_width: float) -> float:
        return self.rng.uniform(-half_width, half_width)

    def generate(self, machines: List[Machine], energy: EnergyData) -> ProductionInsights:
        efficiency_by_machine = [
            {"machine_id": m.machine_id, "avg_efficiency": 100 - m.idle_time_pct + self._jitter(2.0)}
            for m in machines
        ]
        efficiency_by_product = [
            {"product_type": product, "avg_efficiency": eff + self._jitter(2.0)}
            for product, (eff, _) in PRODUCT_BASELINES.items()
        ]
        energy_by_product = [
            {"product_type": product, "avg_energy_consumption": kwh + self._jitter(5.0)}
            for product, (_, kwh) in PRODUCT_BASELINES.items()
        ]
        defects_by_machine = []
        for m in machines:
            rate, spread = DEFECT_RATES[m.status]
            defects_by_machine.append({"machine_id": m.machine_id, "avg_defect_rate": rate + self._jitter(spread)})

        return ProductionInsights(
            efficiency_by_machine=efficiency_by_machine,
            efficiency_by_product=efficiency_by_product,
            energy_by_product=energy_by_product,
            defects_by_machine=defects_by_machine,
            recommendations=build_recommendations(machines, efficiency_by_machine, energy.idle_time_waste),
        )


# =============================================================================
# Plant Overview
# =============================================================================


@dataclass
class PlantStats:
    plant: str
    total: int
    healthy: int
    warning: int
    critical: int
    avg_health: float
    total_energy_kw: float
    avg_efficiency: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plant": self.plant,
            "total": self.total,
            "healthy": self.healthy,
            "warning": self.warning,
            "critical": self.critical,
            "avg_health": self.avg_health,
            "total_energy_kw": self.total_energy_kw,
            "avg_efficiency": self.avg_efficiency,
        }


def plant_overview(machines: List[Machine], plants: List[str]) -> List[PlantStats]:
    """Per-plant statistics, one entry per plant in ``plants`` order."""
    overview = []
    for plant in plants:
        in_plant = [m for m in machines if m.plant == plant]
        statuses = [m.status for m in in_plant]
        overview.append(PlantStats(
            plant=plant,
            total=len(in_plant),
            healthy=statuses.count(MachineStatus.HEALTHY),
            warning=statuses.count(MachineStatus.WARNING),
            critical=statuses.count(MachineStatus.CRITICAL),
            avg_health=_mean([m.health_score for m in in_plant]),
            total_energy_kw=sum(m.energy_kw for m in in_plant),
            avg_efficiency=_mean([100 - m.idle_time_pct for m in in_plant]),
        ))
    return overview
