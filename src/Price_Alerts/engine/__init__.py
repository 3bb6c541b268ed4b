"""Alert evaluation: pure trigger rules and the scan coordinator."""

from Price_Alerts.engine.coordinator import FiringAlert, ScanCoordinator
from Price_Alerts.engine.evaluator import assign_direction, classify, is_expired, should_trigger

__all__ = [
    "FiringAlert",
    "ScanCoordinator",
    "assign_direction",
    "classify",
    "is_expired",
    "should_trigger",
]
