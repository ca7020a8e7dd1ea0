"""Role-based visibility rules for machines."""

from typing import List

from .fleet import ALL_TYPES, Machine
from .session import Selection, User


def visible_accessible(machine: Machine, user: User) -> bool:
    """True if the user's role grants access to the machine at all."""
    return machine.plant in user.assigned_plants and machine.type in user.allowed_types


def visible_for_selection(machine: Machine, user: User, selection: Selection) -> bool:
    """True if the machine belongs in the user's current view.

    Admins see every accessible plant at once; everyone else only sees the
    selected plant. The machine type selection applies to all roles.
    """
    if not visible_accessible(machine, user):
        return False

    if not user.is_admin and machine.plant != selection.selected_plant:
        return False

    if selection.selected_machine_type != ALL_TYPES and machine.type != selection.selected_machine_type:
        return False

    return True


def filter_for_selection(machines: List[Machine], user: User, selection: Selection) -> List[Machine]:
    return [m for m in machines if visible_for_selection(m, user, selection)]


def filter_accessible(machines: List[Machine], user: User) -> List[Machine]:
    return [m for m in machines if visible_accessible(m, user)]
