"""Telemetry engine orchestrating the fleet, the session and all derived views.

The engine owns the machine set. In simulated mode a background tick thread
advances the fleet by one random-walk step per interval and swaps the whole
set in one assignment; in static mode the baseline catalog is used without ticks.

Every change of machines, user or selection triggers a synchronous recompute
pass in a fixed order:

    filter -> dashboard summary -> alerts -> energy/ROI -> insights

The result is published as an immutable-by-convention ``DashboardSnapshot``
and handed to any registered listeners.
"""

import logging
import random
import threading
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .access import filter_accessible, filter_for_selection
from .analytics import (
    DashboardAggregator,
    DashboardSummary,
    EnergyAnalyzer,
    EnergyData,
    InsightsGenerator,
    PlantStats,
    ProductionInsights,
    plant_overview,
)
from .config import Config
from .fleet import Machine, create_fleet, find_machine
from .generators import (
    RANDOM_WALK_BOUNDS,
    Alert,
    AlertGenerator,
    Anomaly,
    AnomalyGenerator,
    RulPrediction,
    RulPredictor,
    SensorHistoryGenerator,
    SensorPoint,
    simulate_machine_updates,
)
from .session import (
    DEFAULT_USERS,
    MemoryPreferenceStore,
    PreferenceStore,
    Selection,
    User,
    YamlPreferenceStore,
    find_user,
    selection_for_user,
    valid_plant_for,
    valid_type_for,
)

logger = logging.getLogger(__name__)

# Valid range per manually updatable reading; health uses its full 0-100 scale
READING_LIMITS: Dict[str, Tuple[float, float]] = {
    name: (bounds.min_value, bounds.max_value) for name, bounds in RANDOM_WALK_BOUNDS.items()
}
READING_LIMITS["health_score"] = (0.0, 100.0)
READING_LIMITS["rul_days"] = (0.0, float("inf"))

UPDATABLE_FIELDS = set(READING_LIMITS)


@dataclass
class DashboardSnapshot:
    """Everything the dashboard shows, computed in one pass."""

    user: User
    selection: Selection
    dashboard_summary: DashboardSummary
    machine_status: List[Machine]
    all_machine_status: List[Machine]
    alerts: List[Alert]
    energy_data: EnergyData
    production_insights: ProductionInsights
    plant_overview: List[PlantStats]
    selected_machine_id: int
    selected_metric: str
    sensor_history: List[SensorPoint] = field(default_factory=list)
    anomalies: List[Anomaly] = field(default_factory=list)
    rul_prediction: Optional[RulPrediction] = None
    tick_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user": self.user.to_dict(),
            "selection": self.selection.to_dict(),
            "tick_count": self.tick_count,
            "dashboard_summary": self.dashboard_summary.to_dict(),
            "machine_status": [m.to_dict() for m in self.machine_status],
            "all_machine_status": [m.to_dict() for m in self.all_machine_status],
            "alerts": [a.to_dict() for a in self.alerts],
            "energy_data": self.energy_data.to_dict(),
            "production_insights": self.production_insights.to_dict(),
            "plant_overview": [p.to_dict() for p in self.plant_overview],
            "selected_machine_id": self.selected_machine_id,
            "selected_metric": self.selected_metric,
            "sensor_history": [p.to_dict() for p in self.sensor_history],
            "anomalies": [a.to_dict() for a in self.anomalies],
            "rul_prediction": self.rul_prediction.to_dict() if self.rul_prediction else None,
        }


SnapshotListener = Callable[[DashboardSnapshot], None]


class Simulator:
    """Owns the fleet state and recomputes dashboard views on every change."""

    def __init__(
        self,
        config: Optional[Config] = None,
        users: Optional[List[User]] = None,
        preference_store: Optional[PreferenceStore] = None,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or Config.default()
        if self.config.simulation.tick_interval_ms <= 0:
            raise ValueError(
                f"tick_interval_ms must be positive, got {self.config.simulation.tick_interval_ms}"
            )

        self.users = list(users or DEFAULT_USERS)
        if not self.users:
            raise ValueError("At least one user is required")

        if preference_store is not None:
            self._prefs = preference_store
        elif self.config.session.preferences_path:
            self._prefs = YamlPreferenceStore(self.config.session.preferences_path)
        else:
            self._prefs = MemoryPreferenceStore()

        self._rng = rng or random.Random(self.config.simulation.random_seed)
        self._clock = clock or datetime.now

        # Generators share one random source and one clock
        self._sensor_gen = SensorHistoryGenerator(self._rng, self._clock)
        self._anomaly_gen = AnomalyGenerator(self._rng, self._clock)
        self._alert_gen = AlertGenerator(self._rng, self._clock)
        self._rul_predictor = RulPredictor(self._rng, self._clock)
        self._aggregator = DashboardAggregator(self._rng, self._clock)
        self._energy = EnergyAnalyzer(self._rng, self._clock)
        self._insights = InsightsGenerator(self._rng)

        # Machine sets: static mode reads the baseline, simulated mode the live set;
        # either is only ever replaced wholesale
        self._baseline: List[Machine] = create_fleet()
        self._live: List[Machine] = list(self._baseline)

        self._user, self._selection = self._restore_session()
        self._selected_machine_id = 1
        self._selected_metric = "temperature"

        self._lock = threading.RLock()
        self._listeners: List[SnapshotListener] = []
        self._running = False
        self._tick_count = 0
        self._tick_thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        self._snapshot = self._compute(full=True)

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def _restore_session(self):
        prefs = self._prefs.load()

        user = find_user(self.users, prefs.get("user_id"))
        if user is None:
            if prefs.get("user_id"):
                logger.warning(f"Stored user '{prefs.get('user_id')}' is unknown, using default")
            user = find_user(self.users, self.config.session.default_user_id) or self.users[0]

        simulated = prefs.get("simulated_mode", self.config.simulation.simulated_mode)
        selection = selection_for_user(
            user,
            plant=prefs.get("plant"),
            machine_type=prefs.get("machine_type"),
            simulated_mode=simulated,
        )
        return user, selection

    def _save_preferences(self) -> None:
        self._prefs.save({
            "user_id": self._user.id,
            "plant": self._selection.selected_plant,
            "machine_type": self._selection.selected_machine_type,
            "simulated_mode": self._selection.simulated_mode,
        })

    @property
    def user(self) -> User:
        return self._user

    @property
    def selection(self) -> Selection:
        return replace(self._selection)

    @property
    def running(self) -> bool:
        return self._running

    @property
    def tick_count(self) -> int:
        return self._tick_count

    @property
    def machines(self) -> List[Machine]:
        """The machine set currently feeding the views (live or baseline)."""
        return list(self._active_machines())

    def _active_machines(self) -> List[Machine]:
        return self._live if self._selection.simulated_mode else self._baseline

    def set_user(self, user: Union[User, str]) -> DashboardSnapshot:
        """Switch user, keeping plant/type only if the new user may see them."""
        if isinstance(user, str):
            found = find_user(self.users, user)
            if found is None:
                raise ValueError(f"Unknown user: {user}")
            user = found

        with self._lock:
            self._user = user
            self._selection = replace(
                self._selection,
                selected_plant=valid_plant_for(user, self._selection.selected_plant),
                selected_machine_type=valid_type_for(user, self._selection.selected_machine_type),
            )
            logger.info(f"User switched to {user.name} ({user.role.value})")
        return self._on_selection_changed()

    def set_plant(self, plant: str) -> DashboardSnapshot:
        """Select a plant; plants outside the user's assignment fall back to their first."""
        with self._lock:
            valid = valid_plant_for(self._user, plant)
            if valid != plant:
                logger.warning(f"Plant '{plant}' not assigned to {self._user.id}, using '{valid}'")
            self._selection = replace(self._selection, selected_plant=valid)
        return self._on_selection_changed()

    def set_machine_type(self, machine_type: str) -> DashboardSnapshot:
        """Select a machine type or "All"; disallowed types are replaced."""
        with self._lock:
            valid = valid_type_for(self._user, machine_type)
            if valid != machine_type:
                logger.warning(f"Type '{machine_type}' not allowed for {self._user.id}, using '{valid}'")
            self._selection = replace(self._selection, selected_machine_type=valid)
        return self._on_selection_changed()

    def set_simulated_mode(self, enabled: bool) -> DashboardSnapshot:
        """Toggle simulation; the tick thread follows the flag while running."""
        with self._lock:
            changed = self._selection.simulated_mode != enabled
            self._selection = replace(self._selection, simulated_mode=enabled)

        if changed:
            logger.info(f"Simulation {'enabled' if enabled else 'disabled'}")
            if self._running:
                if enabled:
                    self._start_tick_thread()
                else:
                    self._stop_tick_thread()

        return self._on_selection_changed()

    def _on_selection_changed(self) -> DashboardSnapshot:
        self._save_preferences()
        return self._recompute(full=False)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> DashboardSnapshot:
        """Start the engine: initial refresh plus the tick thread if simulating."""
        if self._running:
            return self._snapshot

        self._running = True
        snapshot = self.refresh_data()
        if self._selection.simulated_mode:
            self._start_tick_thread()

        logger.info(
            f"Engine started for {self._user.name} "
            f"(plant={self._selection.selected_plant}, type={self._selection.selected_machine_type}, "
            f"simulated={self._selection.simulated_mode})"
        )
        return snapshot

    def stop(self) -> None:
        """Stop the engine; no tick fires after this returns."""
        if not self._running:
            return
        self._running = False
        self._stop_tick_thread()
        logger.info("Engine stopped")

    def _start_tick_thread(self) -> None:
        if self._tick_thread and self._tick_thread.is_alive():
            return

        self._stop_event = threading.Event()
        self._tick_thread = threading.Thread(
            target=self._tick_loop,
            args=(self._stop_event,),
            name="faultzero-tick",
            daemon=True,
        )
        self._tick_thread.start()
        logger.debug("Tick thread started")

    def _stop_tick_thread(self) -> None:
        thread = self._tick_thread
        self._stop_event.set()
        self._tick_thread = None

        if thread and thread is not threading.current_thread():
            thread.join(timeout=5)
            logger.debug("Tick thread stopped")

    def _tick_loop(self, stop_event: threading.Event) -> None:
        """Tick every interval until ``stop_event`` is set."""
        interval = self.config.simulation.tick_interval_ms / 1000.0

        while not stop_event.wait(interval):
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in tick loop: {e}")

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def tick(self) -> Optional[DashboardSnapshot]:
        """Advance the live fleet by one step. No-op unless simulating."""
        with self._lock:
            if not self._selection.simulated_mode:
                return None
            self._live = simulate_machine_updates(self._live, self._rng)
            self._tick_count += 1
            logger.debug(f"Tick {self._tick_count}")
        return self._recompute(full=False)

    def refresh_data(self) -> DashboardSnapshot:
        """Recompute every view, including sensor history, anomalies and RUL."""
        return self._recompute(full=True)

    def update_sensor_data(self, machine_id: int, metric: str) -> DashboardSnapshot:
        """Point the sensor, anomaly and RUL views at another machine/metric."""
        with self._lock:
            self._selected_machine_id = machine_id
            self._selected_metric = metric
            machines = self._active_machines()
            self._snapshot = replace(
                self._snapshot,
                selected_machine_id=machine_id,
                selected_metric=metric,
                **self._machine_views(machines),
            )
            snapshot = self._snapshot
            self._notify(snapshot)
        return snapshot

    def update_machine(self, machine_id: int, **readings: float) -> Optional[DashboardSnapshot]:
        """Overwrite readings of one machine in the active set and recompute.

        Values outside a field's valid range are clamped into it. Returns
        ``None`` when the machine does not exist.
        """
        unknown = set(readings) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update machine fields: {sorted(unknown)}")

        clamped = {}
        for name, value in readings.items():
            low, high = READING_LIMITS[name]
            clamped[name] = max(low, min(high, float(value)))
            if clamped[name] != value:
                logger.warning(f"Machine {machine_id} {name}={value} out of range, using {clamped[name]}")
        readings = clamped

        with self._lock:
            machines = self._active_machines()
            if find_machine(machines, machine_id) is None:
                return None
            updated = [
                replace(m, **readings) if m.machine_id == machine_id else m
                for m in machines
            ]
            if self._selection.simulated_mode:
                self._live = updated
            else:
                self._baseline = updated
        return self._recompute(full=False)

    def get_snapshot(self) -> DashboardSnapshot:
        return self._snapshot

    def add_listener(self, listener: SnapshotListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: SnapshotListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    # ------------------------------------------------------------------
    # Recompute
    # ------------------------------------------------------------------

    def _machine_views(self, machines: List[Machine]) -> Dict[str, Any]:
        """Views tied to the selected machine/metric."""
        return {
            "sensor_history": self._sensor_gen.generate(
                self._selected_machine_id,
                self._selected_metric,
                self.config.simulation.sensor_history_days,
            ),
            "anomalies": self._anomaly_gen.generate(machines, self._selected_machine_id),
            "rul_prediction": self._rul_predictor.predict(machines, self._selected_machine_id),
        }

    def _compute(self, full: bool) -> DashboardSnapshot:
        machines = self._active_machines()

        visible = filter_for_selection(machines, self._user, self._selection)
        summary = self._aggregator.aggregate(visible, self._selection.simulated_mode)
        alerts = self._alert_gen.generate(visible)
        energy = self._energy.analyze(visible)
        insights = self._insights.generate(visible, energy)

        accessible = filter_accessible(machines, self._user)
        overview = plant_overview(accessible, self._user.assigned_plants)

        if full:
            machine_views = self._machine_views(machines)
        else:
            previous = self._snapshot
            machine_views = {
                "sensor_history": previous.sensor_history,
                "anomalies": previous.anomalies,
                "rul_prediction": previous.rul_prediction,
            }

        return DashboardSnapshot(
            user=self._user,
            selection=replace(self._selection),
            dashboard_summary=summary,
            machine_status=visible,
            all_machine_status=accessible,
            alerts=alerts,
            energy_data=energy,
            production_insights=insights,
            plant_overview=overview,
            selected_machine_id=self._selected_machine_id,
            selected_metric=self._selected_metric,
            tick_count=self._tick_count,
            **machine_views,
        )

    def _recompute(self, full: bool) -> DashboardSnapshot:
        # Listeners run under the lock so they see snapshots in publish order
        with self._lock:
            self._snapshot = self._compute(full)
            snapshot = self._snapshot
            logger.debug(
                f"Recomputed views: {snapshot.dashboard_summary.total_machines} machines, "
                f"{len(snapshot.alerts)} alerts"
            )
            self._notify(snapshot)
        return snapshot

    def _notify(self, snapshot: DashboardSnapshot) -> None:
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as e:
                logger.error(f"Snapshot listener failed: {e}")
