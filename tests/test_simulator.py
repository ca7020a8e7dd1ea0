"""Tests for the Simulator engine."""

import json
import random
import threading
import time
from datetime import datetime

import pytest
from unittest.mock import MagicMock

from faultzero_sim.config import Config
from faultzero_sim.fleet import MachineStatus, create_fleet
from faultzero_sim.generators import RANDOM_WALK_BOUNDS, AlertType
from faultzero_sim.session import MemoryPreferenceStore
from faultzero_sim.simulator import Simulator

NOW = datetime(2024, 1, 10, 12, 0, 0)


def _ids(machines):
    return {m.machine_id for m in machines}


class TestSimulator:
    """Tests for Simulator views and selection handling."""

    @pytest.fixture
    def config(self):
        config = Config.default()
        config.simulation.random_seed = 1234
        return config

    @pytest.fixture
    def prefs(self):
        return MemoryPreferenceStore()

    @pytest.fixture
    def simulator(self, config, prefs):
        return Simulator(config, preference_store=prefs, clock=lambda: NOW)

    def test_default_user_is_operator(self, simulator):
        assert simulator.user.id == "u-op"
        assert simulator.selection.selected_plant == "Plant A"
        assert simulator.selection.selected_machine_type == "Slitter"

    def test_operator_sees_machines_one_and_two(self, simulator):
        assert _ids(simulator.get_snapshot().machine_status) == {1, 2}

    @pytest.mark.parametrize("plant", ["Plant A", "Plant B", "Plant D"])
    @pytest.mark.parametrize("machine_type", ["All", "Slitter", "Inspection"])
    def test_operator_view_for_any_selection(self, simulator, plant, machine_type):
        simulator.set_plant(plant)
        snapshot = simulator.set_machine_type(machine_type)

        assert _ids(snapshot.machine_status) == {1, 2}

    def test_admin_with_all_types_sees_fleet(self, simulator):
        simulator.set_user("u-admin")
        snapshot = simulator.set_machine_type("All")

        assert _ids(snapshot.machine_status) == set(range(1, 15))
        assert snapshot.dashboard_summary.total_machines == 14

    def test_containment(self, simulator):
        for user_id in ["u-op", "u-sup", "u-mgr", "u-admin"]:
            simulator.set_user(user_id)
            snapshot = simulator.get_snapshot()

            assert _ids(snapshot.machine_status) <= _ids(snapshot.all_machine_status)
            assert _ids(snapshot.all_machine_status) <= _ids(create_fleet())

    def test_status_counts_sum(self, simulator):
        simulator.set_user("u-mgr")
        simulator.set_plant("Plant C")
        summary = simulator.set_machine_type("All").dashboard_summary

        assert summary.total_machines == 5
        assert summary.healthy_machines + summary.warning_machines + summary.critical_machines == 5

    def test_set_unknown_user(self, simulator):
        with pytest.raises(ValueError):
            simulator.set_user("nobody")

    def test_switching_user_resets_invalid_plant(self, simulator):
        simulator.set_user("u-admin")
        simulator.set_plant("Plant D")

        simulator.set_user("u-sup")

        assert simulator.selection.selected_plant == "Plant A"

    def test_switching_user_keeps_valid_plant(self, simulator):
        simulator.set_user("u-admin")
        simulator.set_plant("Plant B")

        simulator.set_user("u-sup")

        assert simulator.selection.selected_plant == "Plant B"

    def test_preferences_saved_on_change(self, simulator, prefs):
        simulator.set_user("u-mgr")
        simulator.set_plant("Plant C")

        assert prefs.load() == {
            "user_id": "u-mgr",
            "plant": "Plant C",
            "machine_type": "Slitter",
            "simulated_mode": False,
        }

    def test_preferences_restored_at_init(self, config):
        prefs = MemoryPreferenceStore(
            {"user_id": "u-sup", "plant": "Plant B", "machine_type": "Inspection", "simulated_mode": True}
        )

        simulator = Simulator(config, preference_store=prefs)

        assert simulator.user.id == "u-sup"
        assert simulator.selection.selected_plant == "Plant B"
        assert simulator.selection.selected_machine_type == "Inspection"
        assert simulator.selection.simulated_mode is True
        assert _ids(simulator.get_snapshot().machine_status) == {7}

    def test_unknown_stored_user_falls_back(self, config):
        prefs = MemoryPreferenceStore({"user_id": "ghost", "plant": "Plant Z"})

        simulator = Simulator(config, preference_store=prefs)

        assert simulator.user.id == "u-op"
        assert simulator.selection.selected_plant == "Plant A"

    def test_invalid_tick_interval(self, config):
        config.simulation.tick_interval_ms = 0

        with pytest.raises(ValueError):
            Simulator(config)

    def test_energy_alert_for_idle_machine(self, simulator):
        simulator.set_user("u-sup")
        snapshot = simulator.set_plant("Plant B")

        energy_alerts = [a for a in snapshot.alerts if a.type == AlertType.ENERGY]
        assert [a.machine_id for a in energy_alerts] == [5]

    def test_health_change_flips_status(self, simulator):
        simulator.set_user("u-sup")
        simulator.set_plant("Plant B")
        machine = next(m for m in simulator.get_snapshot().machine_status if m.machine_id == 5)
        assert machine.status == MachineStatus.CRITICAL

        snapshot = simulator.update_machine(5, health_score=90.0)

        machine = next(m for m in snapshot.machine_status if m.machine_id == 5)
        assert machine.status == MachineStatus.HEALTHY
        assert snapshot.dashboard_summary.critical_machines == 0

    def test_update_unknown_machine(self, simulator):
        assert simulator.update_machine(99, health_score=10.0) is None

    def test_update_rejects_unknown_fields(self, simulator):
        with pytest.raises(ValueError):
            simulator.update_machine(1, status="Healthy")

    def test_update_clamps_out_of_range_readings(self, simulator):
        snapshot = simulator.update_machine(1, health_score=250.0, idle_time_pct=-40.0, rul_days=-5.0)

        machine = next(m for m in snapshot.machine_status if m.machine_id == 1)
        assert machine.health_score == 100.0
        assert machine.idle_time_pct == RANDOM_WALK_BOUNDS["idle_time_pct"].min_value
        assert machine.rul_days == 0.0
        assert snapshot.dashboard_summary.avg_health_score <= 100.0

    def test_update_keeps_in_range_readings(self, simulator):
        snapshot = simulator.update_machine(1, health_score=10.0, energy_kw=12.0, rul_days=400.0)

        machine = next(m for m in snapshot.machine_status if m.machine_id == 1)
        assert machine.health_score == 10.0
        assert machine.energy_kw == 12.0
        assert machine.rul_days == 400.0
        assert machine.status == MachineStatus.CRITICAL

    def test_static_update_edits_baseline_only(self, simulator):
        simulator.update_machine(1, health_score=10.0)

        assert simulator.machines[0].health_score == 10.0

        simulator.set_simulated_mode(True)
        assert simulator.machines[0].health_score == 90.0

    def test_simulated_update_edits_live_only(self, simulator):
        simulator.set_simulated_mode(True)
        simulator.update_machine(1, health_score=10.0)

        simulator.set_simulated_mode(False)
        assert simulator.machines[0].health_score == 90.0

    def test_update_sensor_data(self, simulator):
        snapshot = simulator.update_sensor_data(5, "vibration")

        assert snapshot.selected_machine_id == 5
        assert snapshot.selected_metric == "vibration"
        assert len(snapshot.sensor_history) == 168
        assert len(snapshot.anomalies) == 3
        assert snapshot.rul_prediction.machine_id == 5

    def test_update_sensor_data_unknown_machine(self, simulator):
        snapshot = simulator.update_sensor_data(42, "temperature")

        assert snapshot.anomalies == []
        assert snapshot.rul_prediction.rul_days == 0
        assert snapshot.rul_prediction.health_score == 0

    def test_selection_change_keeps_sensor_views(self, simulator):
        before = simulator.update_sensor_data(3, "load")

        after = simulator.set_user("u-admin")

        assert after.sensor_history is before.sensor_history
        assert after.selected_machine_id == 3

    def test_refresh_regenerates_sensor_views(self, simulator):
        before = simulator.get_snapshot()

        after = simulator.refresh_data()

        assert after.sensor_history is not before.sensor_history
        assert len(after.sensor_history) == 168

    def test_listener_receives_snapshots(self, simulator):
        listener = MagicMock()
        simulator.add_listener(listener)

        snapshot = simulator.refresh_data()

        listener.assert_called_once_with(snapshot)

    def test_failing_listener_does_not_break_refresh(self, simulator):
        simulator.add_listener(MagicMock(side_effect=RuntimeError("boom")))

        assert simulator.refresh_data() is simulator.get_snapshot()

    def test_snapshot_is_json_serialisable(self, simulator):
        simulator.set_user("u-admin")
        simulator.set_machine_type("All")
        data = json.loads(json.dumps(simulator.refresh_data().to_dict()))

        assert len(data["machine_status"]) == 14
        assert data["user"]["role"] == "Admin"
        assert [p["plant"] for p in data["plant_overview"]] == ["Plant A", "Plant B", "Plant C", "Plant D"]


class TestSimulation:
    """Tests for random-walk ticks and the tick thread."""

    @pytest.fixture
    def config(self):
        config = Config.default()
        config.simulation.random_seed = 99
        return config

    def test_tick_is_noop_in_static_mode(self, config):
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())
        before = simulator.machines

        assert simulator.tick() is None
        assert simulator.machines == before
        assert simulator.tick_count == 0

    def test_tick_mutates_live_set_only(self, config):
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())
        simulator.set_simulated_mode(True)

        for _ in range(10):
            simulator.tick()

        assert simulator.tick_count == 10
        assert simulator.machines != create_fleet()

        simulator.set_simulated_mode(False)
        assert simulator.machines == create_fleet()

    def test_ticks_respect_bounds_and_rul(self, config):
        simulator = Simulator(config, preference_store=MemoryPreferenceStore(), rng=random.Random(5))
        simulator.set_user("u-admin")
        simulator.set_machine_type("All")
        simulator.set_simulated_mode(True)
        previous = {m.machine_id: m.rul_days for m in simulator.machines}

        for _ in range(100):
            snapshot = simulator.tick()
            for machine in snapshot.machine_status:
                for name, bounds in RANDOM_WALK_BOUNDS.items():
                    assert bounds.min_value <= getattr(machine, name) <= bounds.max_value
                assert machine.rul_days <= previous[machine.machine_id]
                previous[machine.machine_id] = machine.rul_days

        assert len(snapshot.machine_status) == 14

    def test_recent_anomalies_static_when_not_simulating(self, config):
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())

        counts = {simulator.refresh_data().dashboard_summary.recent_anomalies for _ in range(10)}

        assert counts == {2}

    def test_start_without_simulation_has_no_thread(self, config):
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())

        simulator.start()
        try:
            assert simulator.running
            assert simulator._tick_thread is None
        finally:
            simulator.stop()

    def test_tick_thread_runs_and_stops(self, config):
        config.simulation.tick_interval_ms = 10
        config.simulation.simulated_mode = True
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())

        ticked = threading.Event()
        simulator.add_listener(lambda snap: ticked.set() if snap.tick_count > 0 else None)

        simulator.start()
        try:
            assert ticked.wait(timeout=5)
        finally:
            simulator.stop()

        count = simulator.tick_count
        time.sleep(0.1)
        assert simulator.tick_count == count
        assert not simulator.running

    def test_disabling_simulation_cancels_ticks(self, config):
        config.simulation.tick_interval_ms = 10
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())
        simulator.start()
        try:
            simulator.set_simulated_mode(True)
            assert simulator._tick_thread is not None

            simulator.set_simulated_mode(False)
            assert simulator._tick_thread is None

            count = simulator.tick_count
            time.sleep(0.1)
            assert simulator.tick_count == count
        finally:
            simulator.stop()

    def test_listeners_end_on_latest_snapshot(self, config):
        config.simulation.tick_interval_ms = 1
        config.simulation.simulated_mode = True
        simulator = Simulator(config, preference_store=MemoryPreferenceStore())
        simulator.set_user("u-admin")
        delivered = []
        simulator.add_listener(delivered.append)

        simulator.start()
        try:
            for i in range(200):
                simulator.set_plant(["Plant A", "Plant B"][i % 2])
        finally:
            simulator.stop()

        assert delivered[-1] is simulator.get_snapshot()
        ticks = [snap.tick_count for snap in delivered]
        assert ticks == sorted(ticks)
