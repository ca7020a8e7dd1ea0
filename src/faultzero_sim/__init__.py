"""FaultZero Simulator - fleet telemetry simulation and dashboard aggregation."""

__version__ = "0.1.0"

from .simulator import DashboardSnapshot, Simulator
from .config import Config
from .session import Role, Selection, User

__all__ = ["Simulator", "DashboardSnapshot", "Config", "Role", "Selection", "User", "__version__"]
