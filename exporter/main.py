"""Prometheus metrics exporter -- consumes trades and alerts, exposes metrics.

Subscribes to both the trades and cancellation-alerts topics and keeps
Prometheus counters, histograms and gauges current.  Grafana reads from
Prometheus to chart traded vs. cancelled volume and offenders over time.

Usage:
    python -m exporter.main
    python -m exporter.main --bootstrap-servers kafka-1:29092 --port 9090
"""

import argparse
import json
import signal
import sys
import time

from confluent_kafka import Consumer, KafkaError
from prometheus_client import Counter, Histogram, Gauge, start_http_server

from surveillance.events import is_valid_record

# ---------------------------------------------------------------------------
# Trade metrics
# ---------------------------------------------------------------------------
trades_total = Counter(
    "tc_trades_total",
    "Total trade events seen",
    ["kind"],
)
trade_volume_total = Counter(
    "tc_trade_volume_total",
    "Traded volume by kind code",
    ["kind"],
)
invalid_trades_total = Counter(
    "tc_invalid_trades_total",
    "Trade events the checker would drop as invalid",
)

# ---------------------------------------------------------------------------
# Alert metrics
# ---------------------------------------------------------------------------
alerts_total = Counter(
    "tc_alerts_total",
    "Companies latched as offenders",
    ["rule_id", "severity"],
)
offending_ratio = Histogram(
    "tc_offending_ratio",
    "Cancellation ratio of the window that latched a company",
    buckets=[0.33, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

# ---------------------------------------------------------------------------
# Throughput
# ---------------------------------------------------------------------------
messages_per_second = Gauge(
    "tc_messages_per_second",
    "Current message processing rate",
)
export_errors_total = Counter(
    "tc_export_errors_total",
    "JSON parse or Kafka consumer errors in the exporter",
)

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down exporter...")
    running = False


# ---------------------------------------------------------------------------
# Metric updaters
# ---------------------------------------------------------------------------

def _process_trade(trade: dict):
    """Update Prometheus metrics for a raw trade event.

    Records the aggregator would drop are only counted as invalid.
    """
    if not is_valid_record(trade):
        invalid_trades_total.inc()
        return

    kind = str(trade["kind"])
    trades_total.labels(kind=kind).inc()
    trade_volume_total.labels(kind=kind).inc(trade["amount"])


def _process_alert(alert: dict):
    """Update Prometheus metrics for an offender alert."""
    rule_id = alert.get("rule_id", "unknown")
    severity = alert.get("severity", "unknown")

    alerts_total.labels(rule_id=rule_id, severity=severity).inc()
    ratio = alert.get("ratio")
    if isinstance(ratio, (int, float)):
        offending_ratio.observe(ratio)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(description="Prometheus metrics exporter")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--trades-topic", default="trades")
    parser.add_argument("--alerts-topic", default="cancellation-alerts")
    parser.add_argument(
        "--port", type=int, default=9090, help="Prometheus metrics HTTP port",
    )
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    start_http_server(args.port)
    print(f"Prometheus metrics server started on :{args.port}")

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": "metrics-exporter",
        "auto.offset.reset": "latest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.trades_topic, args.alerts_topic])

    count = 0
    window_start = time.time()
    window_count = 0

    print(f"Exporter consuming from {args.trades_topic} + {args.alerts_topic} ...")

    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                export_errors_total.inc()
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            try:
                data = json.loads(msg.value().decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError):
                export_errors_total.inc()
                continue
            if not isinstance(data, dict):
                export_errors_total.inc()
                continue

            topic = msg.topic()

            if topic == args.trades_topic:
                _process_trade(data)
            elif topic == args.alerts_topic:
                _process_alert(data)

            count += 1
            window_count += 1

            # Update rate gauge roughly every second
            now = time.time()
            elapsed = now - window_start
            if elapsed >= 1.0:
                messages_per_second.set(window_count / elapsed)
                window_start = now
                window_count = 0

            if count % 5000 == 0:
                print(f"  ... {count} messages exported to metrics")
    finally:
        consumer.close()
        print(f"Exporter done. {count} messages processed.")


if __name__ == "__main__":
    main()
