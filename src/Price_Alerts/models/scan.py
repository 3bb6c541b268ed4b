"""Scan models: the per-pass report and the evaluator's verdict."""

from dataclasses import dataclass

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from Price_Alerts.models.enums import Classification


class ScanReport(BaseModel):
    """Counts produced by one scan pass. Not persisted.

    ``deactivated`` covers both triggered and expired alerts, and only
    successful deliveries count towards the send totals.
    """

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    scanned: int = 0
    triggered: int = 0
    deactivated: int = 0
    sent_emails: int = 0
    sent_push: int = 0


@dataclass(frozen=True)
class Verdict:
    """Result of classifying one alert.

    ``should_trigger`` is only meaningful for ``Classification.EVALUATED``.
    """

    classification: Classification
    should_trigger: bool = False
