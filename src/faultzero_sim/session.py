"""Users, view selection and persisted preferences.

The engine never authenticates anyone: the user is supplied by whoever hosts
the engine. Preferences (last user, plant, machine type, simulation flag) are
read and written through a ``PreferenceStore`` so the engine itself never
touches storage.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .config import as_bool
from .fleet import ALL_TYPES, MACHINE_TYPES, PLANTS

logger = logging.getLogger(__name__)


class Role(Enum):
    """User roles, in increasing order of reach."""

    OPERATOR = "Operator"
    SUPERVISOR = "Supervisor"
    MANAGER = "Manager"
    ADMIN = "Admin"


@dataclass(frozen=True)
class User:
    """A dashboard user and the slice of the fleet they may see."""

    id: str
    name: str
    role: Role
    assigned_plants: List[str] = field(default_factory=list)
    allowed_types: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not self.assigned_plants:
            raise ValueError(f"User {self.id} must be assigned at least one plant")
        if not self.allowed_types:
            raise ValueError(f"User {self.id} must be allowed at least one machine type")

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "assigned_plants": list(self.assigned_plants),
            "allowed_types": list(self.allowed_types),
        }


@dataclass
class Selection:
    """View parameters chosen by the user."""

    selected_plant: str = ""
    selected_machine_type: str = ALL_TYPES
    simulated_mode: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_plant": self.selected_plant,
            "selected_machine_type": self.selected_machine_type,
            "simulated_mode": self.simulated_mode,
        }


DEFAULT_USERS = [
    User(
        id="u-op",
        name="John Operator",
        role=Role.OPERATOR,
        assigned_plants=["Plant A"],
        allowed_types=["Slitter"],
    ),
    User(
        id="u-sup",
        name="Sarah Supervisor",
        role=Role.SUPERVISOR,
        assigned_plants=["Plant A", "Plant B"],
        allowed_types=["Slitter", "Inspection"],
    ),
    User(
        id="u-mgr",
        name="Mike Manager",
        role=Role.MANAGER,
        assigned_plants=["Plant A", "Plant B", "Plant C"],
        allowed_types=["Slitter", "Inspection"],
    ),
    User(
        id="u-admin",
        name="Admin User",
        role=Role.ADMIN,
        assigned_plants=list(PLANTS),
        allowed_types=list(MACHINE_TYPES),
    ),
]


def find_user(users: List[User], user_id: Optional[str]) -> Optional[User]:
    """Look up a user by id."""
    for user in users:
        if user.id == user_id:
            return user
    return None


def valid_plant_for(user: User, plant: Optional[str]) -> str:
    """Keep ``plant`` if the user may see it, otherwise fall back to their first plant."""
    if plant and plant in user.assigned_plants:
        return plant
    return user.assigned_plants[0]


def valid_type_for(user: User, machine_type: Optional[str]) -> str:
    """Keep ``machine_type`` if allowed, else the single allowed type or "All"."""
    if machine_type and (machine_type == ALL_TYPES or machine_type in user.allowed_types):
        return machine_type
    if len(user.allowed_types) == 1:
        return user.allowed_types[0]
    return ALL_TYPES


def selection_for_user(
    user: User,
    plant: Optional[str] = None,
    machine_type: Optional[str] = None,
    simulated_mode: Any = False,
) -> Selection:
    """Build a selection that is valid for ``user`` from possibly stale values."""
    return Selection(
        selected_plant=valid_plant_for(user, plant),
        selected_machine_type=valid_type_for(user, machine_type),
        simulated_mode=as_bool(simulated_mode),
    )


# =============================================================================
# Preference stores
# =============================================================================


class PreferenceStore:
    """Capability for loading and saving view preferences.

    Keys: ``user_id``, ``plant``, ``machine_type``, ``simulated_mode``.
    """

    def load(self) -> Dict[str, Any]:
        raise NotImplementedError

    def save(self, prefs: Dict[str, Any]) -> None:
        raise NotImplementedError


class MemoryPreferenceStore(PreferenceStore):
    """Keeps preferences for the lifetime of the process only."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._prefs: Dict[str, Any] = dict(initial or {})

    def load(self) -> Dict[str, Any]:
        return dict(self._prefs)

    def save(self, prefs: Dict[str, Any]) -> None:
        self._prefs = dict(prefs)


class YamlPreferenceStore(PreferenceStore):
    """Stores preferences in a small YAML file."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring malformed preferences file {self.path}")
            return {}
        return data

    def save(self, prefs: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w") as f:
            yaml.dump(prefs, f, default_flow_style=False, sort_keys=False)
