"""Excessive cancellations: cancelled volume too large a share of the window.

A company latches once cancelled / (cancelled + purchased) over its trailing
60-second window reaches 0.33.  Volume is summed, not counted, so one large
cancellation outweighs many small purchases.
"""

from surveillance.events import DEFAULT_CODES, Kind, TradeEvent
from surveillance.rules import Rule

WINDOW_SECONDS = 60
THRESHOLD = 0.33


def volumes(events: list[TradeEvent]) -> tuple[float, float]:
    """Return (cancelled, purchased) volume.  Unmapped codes count for neither."""
    cancelled = 0
    purchased = 0
    for e in events:
        if e.kind is Kind.CANCEL:
            cancelled += e.amount
        elif e.kind is Kind.PURCHASE:
            purchased += e.amount
    return cancelled, purchased


def ratio_for_window(events: list[TradeEvent]) -> float:
    """Cancelled share of total volume.  A window with no volume scores 0.0."""
    cancelled, purchased = volumes(events)
    total = cancelled + purchased
    if total == 0:
        return 0.0
    return cancelled / total


class ExcessiveCancellation(Rule):
    id = "excessive_cancellations"
    name = "Excessive Cancellations"
    severity = "high"

    def __init__(self, window_seconds: int = WINDOW_SECONDS,
                 threshold: float = THRESHOLD,
                 codes: dict[str, Kind] | None = None,
                 rule_id: str | None = None, name: str | None = None,
                 severity: str | None = None):
        self.window_seconds = window_seconds
        self.threshold = threshold
        self.codes = dict(DEFAULT_CODES if codes is None else codes)
        if rule_id is not None:
            self.id = rule_id
        if name is not None:
            self.name = name
        if severity is not None:
            self.severity = severity

    def trigger(self, events):
        return ratio_for_window(events) >= self.threshold

    def evidence(self, events):
        if not events:
            return {}
        cancelled, purchased = volumes(events)
        timestamps = [e.timestamp for e in events]
        return {
            "cancelled_volume": cancelled,
            "purchased_volume": purchased,
            "ratio": round(ratio_for_window(events), 4),
            "event_count": len(events),
            "span_seconds": max(timestamps) - min(timestamps),
        }
