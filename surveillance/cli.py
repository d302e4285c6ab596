"""Check a trades CSV for companies with excessive cancellations.

Usage:
    python -m surveillance.cli data/trades.csv
    python -m surveillance.cli data/trades.csv --rule my_rule.yml --json
"""

import argparse
import json
import sys

from surveillance.checker import ExcessiveCancellationsChecker
from surveillance.rules.loader import DEFAULT_RULE_PATH, load_rule
from surveillance.source import SourceError


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Excessive cancellations checker")
    parser.add_argument("path", help="Headerless CSV: dateTime,company,type,amount")
    parser.add_argument("--rule", default=str(DEFAULT_RULE_PATH),
                        help="Rule YAML (window, threshold, kind codes)")
    parser.add_argument("--json", action="store_true", default=False,
                        help="Print one JSON object instead of a report")
    args = parser.parse_args(argv)

    try:
        rule = load_rule(args.rule)
    except (OSError, ValueError) as e:
        print(f"Could not load rule: {e}", file=sys.stderr)
        return 1

    checker = ExcessiveCancellationsChecker(args.path, rule=rule)
    try:
        aggregator = checker.check()
    except SourceError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    offenders = aggregator.offenders()
    well_behaved = aggregator.well_behaved_count()

    if args.json:
        print(json.dumps({
            "offenders": offenders,
            "well_behaved": well_behaved,
            "ingested": aggregator.ingested,
            "dropped_invalid": aggregator.dropped_invalid,
        }, separators=(",", ":")))
        return 0

    print(f"Rule: {rule.name}  window={rule.window_seconds}s  threshold={rule.threshold}")
    print(f"Records: {aggregator.ingested} ingested, "
          f"{aggregator.dropped_invalid} invalid, "
          f"{aggregator.dropped_latched} after latch")
    print(f"Offenders ({len(offenders)}):")
    for alert in aggregator.alerts():
        print(f"  {alert['company']:<30s} ratio={alert['ratio']:.3f}  "
              f"events={alert['event_count']}")
    print(f"Well-behaved companies: {well_behaved}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
