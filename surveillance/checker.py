"""Run-to-completion queries over a whole trade source.

Every query is a full run: reset the aggregator, read the entire source,
ingest it in order, answer.  The source is read before anything is ingested,
so a source that fails leaves no half-built result behind.
"""

from collections.abc import Callable, Iterable
from pathlib import Path

from surveillance.aggregator import WindowAggregator
from surveillance.rules import Rule
from surveillance.source import CsvTradeSource


class ExcessiveCancellationsChecker:

    def __init__(self, source: str | Path | Callable[[], Iterable[dict]],
                 rule: Rule | None = None):
        if isinstance(source, (str, Path)):
            source = CsvTradeSource(source)
        self.source = source
        self.aggregator = WindowAggregator(rule)

    def check(self) -> WindowAggregator:
        """Run the source through a freshly reset aggregator and return it."""
        self.aggregator.reset()
        records = list(self.source())
        for record in records:
            self.aggregator.ingest(record)
        return self.aggregator

    def companies_involved_in_excessive_cancellations(self) -> list[str]:
        return self.check().offenders()

    def total_number_of_well_behaved_companies(self) -> int:
        return self.check().well_behaved_count()
