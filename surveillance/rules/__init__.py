# Detection rules as Python classes.  Parameters a compliance team is likely
# to tune (window length, threshold, kind codes) are read from YAML by
# surveillance.rules.loader; the decision logic itself stays in code.

from surveillance.events import Kind, TradeEvent


class Rule:
    """Base detection rule. Subclass and implement trigger()."""

    id: str
    name: str
    severity: str  # low | medium | high | critical
    window_seconds: int
    codes: dict[str, Kind]

    def trigger(self, events: list[TradeEvent]) -> bool:
        """Given all events in the company's current window, should it latch?"""
        raise NotImplementedError

    def evidence(self, events: list[TradeEvent]) -> dict:
        """Summarize the window that caused the latch."""
        return {}

    def group_key(self, event: TradeEvent) -> str:
        """Windowing key. Default: per-company."""
        return event.company


from surveillance.rules.excessive_cancellation import ExcessiveCancellation  # noqa: E402

__all__ = ["Rule", "ExcessiveCancellation"]
