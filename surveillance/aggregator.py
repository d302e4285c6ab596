"""Window aggregator: per-company trailing windows and the offender latch.

Pure business logic, no I/O.  Callers push records in arrival order and
query the offender set once the input is exhausted; the streaming service
does the same thing one Kafka message at a time.

State: dict[company, SlidingWindow] plus an insertion-ordered offender map.
Each company moves Unseen -> Tracked -> Offending and never leaves Offending.
"""

from surveillance.events import TradeEvent, to_event
from surveillance.rules import Rule
from surveillance.rules.excessive_cancellation import ExcessiveCancellation, ratio_for_window
from surveillance.sliding_window import SlidingWindow


class WindowAggregator:

    def __init__(self, rule: Rule | None = None):
        self.rule = rule or ExcessiveCancellation()
        self._windows: dict[str, SlidingWindow] = {}
        # company -> alert.  A dict gives O(1) membership and keeps latch order.
        self._offenders: dict[str, dict] = {}
        self.ingested = 0
        self.dropped_invalid = 0
        self.dropped_latched = 0

    def reset(self) -> None:
        """Forget every window and offender from the previous run."""
        self._windows.clear()
        self._offenders.clear()
        self.ingested = 0
        self.dropped_invalid = 0
        self.dropped_latched = 0

    def ingest(self, record: dict) -> None:
        """Feed one record.

          1. Validate -- invalid records are dropped without touching state
          2. Latch    -- records for an existing offender are dropped too
          3. Route    -- the first record for a company only opens its window
          4. Window   -- append, then evict by the record's own timestamp
          5. Decide   -- latch the company if the rule fires on the window
        """
        event = to_event(record, self.rule.codes)
        if event is None:
            self.dropped_invalid += 1
            return

        key = self.rule.group_key(event)
        if key in self._offenders:
            self.dropped_latched += 1
            return

        self.ingested += 1

        # A company's first event never decides anything on its own.
        window = self._windows.get(key)
        if window is None:
            window = SlidingWindow(self.rule.window_seconds)
            window.add(event)
            self._windows[key] = window
            return

        window.add(event)

        current_events = window.events()
        if self.rule.trigger(current_events):
            self._offenders[key] = self._alert(key, event, current_events)

    def offenders(self) -> list[str]:
        """Companies latched so far, in the order they latched."""
        return list(self._offenders)

    def well_behaved_count(self) -> int:
        """Companies with at least one valid event that never latched."""
        return sum(1 for company in self._windows if company not in self._offenders)

    def is_offender(self, company: str) -> bool:
        return company in self._offenders

    def alerts(self) -> list[dict]:
        """One alert per offender, in latch order."""
        return list(self._offenders.values())

    def window(self, company: str) -> list[TradeEvent]:
        """Retained events for *company*, oldest arrival first."""
        window = self._windows.get(company)
        return window.events() if window is not None else []

    def companies(self) -> list[str]:
        return list(self._windows)

    def _alert(self, company: str, event: TradeEvent,
               events: list[TradeEvent]) -> dict:
        return {
            "rule_id": self.rule.id,
            "rule_name": self.rule.name,
            "severity": self.rule.severity,
            "company": company,
            # Event time of the record that tipped the window over, not now().
            "timestamp": event.timestamp,
            "window_seconds": self.rule.window_seconds,
            "event_count": len(events),
            "ratio": ratio_for_window(events),
            "evidence": self.rule.evidence(events),
        }
