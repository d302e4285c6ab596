"""Synthetic trade event generator.

Simulates a trading day for a pool of companies, most of them well-behaved
and a few that cancel a large share of what they put on the book.  Writes
JSON events to Kafka, or a headerless CSV that surveillance.cli can read.

Usage:
    python producer.py
    python producer.py --companies 20 --cancellers 3 --eps 100 --topic trades
    python producer.py --csv data/trades.csv --count 5000
"""

import argparse
import json
import random
import signal
import time
from dataclasses import dataclass

import pandas as pd
from confluent_kafka import Producer

from surveillance.events import DEFAULT_CODES, Kind

# Kind -> the code the upstream feed uses for it.
CODES = {kind: code for code, kind in DEFAULT_CODES.items()}

NAMES = [
    "Bank of Mars", "Acme Co", "Lunar Holdings", "Ape Accountants",
    "Teddy Bear Money", "Fatburgers", "Sunny Side Capital", "Blue Mesa Trust",
    "Cliffside Partners", "Northwind Traders", "Greenfield Mutual",
    "Harbor Point", "Silver Birch", "Quayside Securities", "Redwood Assets",
    "Kestrel Funds", "Oak & Ash", "Pinecrest Bank", "Ridgeway Markets",
    "Tidewater Finance",
]

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down generator...")
    running = False


# ---------------------------------------------------------------------------
# Company profiles
# ---------------------------------------------------------------------------

@dataclass
class Company:
    name: str
    role: str  # well_behaved | canceller
    trades_per_min: float
    cancel_rate: float  # fraction of trades that are cancellations
    amount_lo: int
    amount_hi: int


def _create_companies(n_companies, n_cancellers):
    """Build the company pool; the last n_cancellers are cancellers."""
    companies = []
    for i in range(n_companies):
        name = NAMES[i] if i < len(NAMES) else f"Company {i + 1:03d}"
        canceller = i >= n_companies - n_cancellers
        companies.append(Company(
            name=name,
            role="canceller" if canceller else "well_behaved",
            trades_per_min=random.uniform(5, 40),
            cancel_rate=random.uniform(0.45, 0.7) if canceller else random.uniform(0.0, 0.08),
            amount_lo=1_000,
            amount_hi=200_000,
        ))
    return companies


def _make_trade(company: Company, ts: int) -> dict:
    """One trade for *company* at event time *ts* (epoch seconds)."""
    kind = Kind.CANCEL if random.random() < company.cancel_rate else Kind.PURCHASE
    return {
        "timestamp": ts,
        "company": company.name,
        "kind": CODES[kind],
        "amount": random.randint(company.amount_lo, company.amount_hi) // 1000 * 1000,
    }


def _write_csv(path, companies, count, start_ts):
    """Write *count* trades, one simulated second apart on average."""
    weights = [c.trades_per_min for c in companies]
    ts = start_ts
    rows = []
    for _ in range(count):
        ts += random.randint(0, 2)
        company = random.choices(companies, weights=weights, k=1)[0]
        rows.append(_make_trade(company, ts))

    df = pd.DataFrame(rows, columns=["timestamp", "company", "kind", "amount"])
    df["timestamp"] = pd.to_datetime(df["timestamp"], unit="s").dt.strftime("%Y-%m-%d %H:%M:%S")
    df.to_csv(path, header=False, index=False)
    print(f"Wrote {count} trades to {path}")


# ---------------------------------------------------------------------------
# Main loop
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Synthetic trade generator")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--topic", default="trades")
    parser.add_argument("--companies", type=int, default=12)
    parser.add_argument("--cancellers", type=int, default=2)
    parser.add_argument("--eps", type=float, default=50, help="Target events/sec")
    parser.add_argument("--csv", help="Write a CSV file instead of producing to Kafka")
    parser.add_argument("--count", type=int, default=1000,
                        help="Number of trades to write with --csv")
    parser.add_argument("--seed", type=int)
    args = parser.parse_args()

    if args.seed is not None:
        random.seed(args.seed)

    companies = _create_companies(args.companies, min(args.cancellers, args.companies))

    print(f"Companies: {len(companies)} total")
    for c in companies:
        print(f"  {c.name:<24s} {c.role:<13s} ~{c.trades_per_min:>5.1f} tpm  "
              f"cancel={c.cancel_rate:.0%}")

    if args.csv:
        _write_csv(args.csv, companies, args.count, int(time.time()))
        return

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    producer = Producer({
        "bootstrap.servers": args.bootstrap_servers,
        "acks": "all",
        "client.id": "trade-generator",
    })

    print(f"Generating to topic '{args.topic}' at ~{args.eps} events/sec")
    weights = [c.trades_per_min for c in companies]
    count = 0
    delay = 1.0 / args.eps

    while running:
        company = random.choices(companies, weights=weights, k=1)[0]
        trade = _make_trade(company, int(time.time()))

        producer.produce(
            topic=args.topic,
            key=trade["company"].encode(),
            value=json.dumps(trade),
        )
        producer.poll(0)

        count += 1
        if count % 500 == 0:
            print(f"  ... {count} trades produced")

        time.sleep(delay)

    producer.flush()
    print(f"Done. {count} trades produced.")


if __name__ == "__main__":
    main()
