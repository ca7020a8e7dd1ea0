"""Tests for the fleet registry."""

import pytest

from faultzero_sim.fleet import (
    MACHINE_TYPES,
    PLANTS,
    Machine,
    MachineStatus,
    create_fleet,
    find_machine,
    status_for_health,
)


class TestCreateFleet:
    """Tests for the fleet catalog."""

    def test_fleet_has_fourteen_machines(self):
        fleet = create_fleet()

        assert len(fleet) == 14
        assert [m.machine_id for m in fleet] == list(range(1, 15))

    def test_machines_per_plant(self):
        fleet = create_fleet()
        counts = {plant: sum(1 for m in fleet if m.plant == plant) for plant in PLANTS}

        assert counts == {"Plant A": 4, "Plant B": 3, "Plant C": 5, "Plant D": 2}

    def test_only_known_types(self):
        assert {m.type for m in create_fleet()} == set(MACHINE_TYPES)

    def test_catalog_is_deterministic(self):
        first = create_fleet()
        second = create_fleet()

        assert first == second
        assert first[0] is not second[0]

    def test_seed_values(self):
        machine = find_machine(create_fleet(), 5)

        assert machine.plant == "Plant B"
        assert machine.type == "Slitter"
        assert machine.health_score == 45.0
        assert machine.idle_time_pct == 25.0
        assert machine.rul_days == 25.0

    def test_find_machine_missing(self):
        assert find_machine(create_fleet(), 99) is None


class TestMachineStatus:
    """Tests for status derivation."""

    @pytest.mark.parametrize(
        "health,expected",
        [
            (0.0, MachineStatus.CRITICAL),
            (49.99, MachineStatus.CRITICAL),
            (50.0, MachineStatus.WARNING),
            (74.99, MachineStatus.WARNING),
            (75.0, MachineStatus.HEALTHY),
            (100.0, MachineStatus.HEALTHY),
        ],
    )
    def test_thresholds(self, health, expected):
        assert status_for_health(health) == expected

    def test_status_follows_health_score(self):
        machine = find_machine(create_fleet(), 5)
        assert machine.status == MachineStatus.CRITICAL

        machine.health_score = 90.0
        assert machine.status == MachineStatus.HEALTHY

    def test_catalog_status_is_derived(self):
        fleet = create_fleet()

        # Seed health 58 and 76 classify by threshold
        assert find_machine(fleet, 9).status == MachineStatus.WARNING
        assert find_machine(fleet, 7).status == MachineStatus.HEALTHY

    def test_to_dict_includes_status(self):
        data = find_machine(create_fleet(), 1).to_dict()

        assert data["status"] == "Healthy"
        assert data["machine_id"] == 1
        assert data["energy_kw"] == 10.2
