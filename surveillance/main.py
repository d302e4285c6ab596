"""Streaming checker -- reads trade events, latches offenders, produces alerts.

Consumes JSON trade events from the trades topic, pushes each through one
WindowAggregator, and publishes an alert the moment a company latches.
Single process: every company's window lives in this consumer's memory, so
the trades topic should be keyed by company.

Usage:
    python -m surveillance.main
    python -m surveillance.main --bootstrap-servers kafka-1:29092 --input-topic trades
"""

import argparse
import json
import signal
import sys

from confluent_kafka import Consumer, Producer, KafkaError
from confluent_kafka.admin import AdminClient, NewTopic

from surveillance.aggregator import WindowAggregator
from surveillance.rules.loader import DEFAULT_RULE_PATH, load_rule

running = True


def _shutdown(sig, frame):
    global running
    print("\nShutting down checker...")
    running = False


def _ensure_topic(bootstrap_servers, topic):
    """Create the output topic if it doesn't already exist."""
    admin = AdminClient({"bootstrap.servers": bootstrap_servers})
    fs = admin.create_topics([NewTopic(topic, num_partitions=3, replication_factor=3)])
    for t, f in fs.items():
        try:
            f.result()
            print(f"Created topic '{t}'")
        except Exception as e:
            if "TOPIC_ALREADY_EXISTS" in str(e):
                print(f"Topic '{t}' already exists")
            else:
                raise


def decode_trade(raw: bytes) -> dict | None:
    """JSON object from a message value, or None if it isn't one."""
    try:
        data = json.loads(raw.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        return None
    return data if isinstance(data, dict) else None


def publish_new_alerts(aggregator: WindowAggregator, producer, topic: str,
                       already_published: int) -> int:
    """Produce alerts latched since *already_published*; return the new total."""
    alerts = aggregator.alerts()
    for alert in alerts[already_published:]:
        producer.produce(
            topic,
            key=alert["company"].encode(),
            value=json.dumps(alert).encode("utf-8"),
        )
        print(f"ALERT  company={alert['company']:<24s} "
              f"ratio={alert['ratio']:.3f}  events={alert['event_count']}")
    return len(alerts)


def main():
    parser = argparse.ArgumentParser(description="Streaming excessive cancellations checker")
    parser.add_argument("--bootstrap-servers", default="localhost:9092")
    parser.add_argument("--input-topic", default="trades")
    parser.add_argument("--output-topic", default="cancellation-alerts")
    parser.add_argument("--group-id", default="cancellation-checker")
    parser.add_argument("--rule", default=str(DEFAULT_RULE_PATH))
    args = parser.parse_args()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    rule = load_rule(args.rule)
    _ensure_topic(args.bootstrap_servers, args.output_topic)

    consumer = Consumer({
        "bootstrap.servers": args.bootstrap_servers,
        "group.id": args.group_id,
        "auto.offset.reset": "earliest",
        "enable.auto.commit": True,
    })
    consumer.subscribe([args.input_topic])

    producer = Producer({"bootstrap.servers": args.bootstrap_servers})

    aggregator = WindowAggregator(rule)
    consumed = 0
    malformed = 0
    published = 0

    print(f"Checker started  input={args.input_topic}  output={args.output_topic}  "
          f"window={rule.window_seconds}s  threshold={rule.threshold}")

    try:
        while running:
            msg = consumer.poll(1.0)
            if msg is None:
                continue
            if msg.error():
                if msg.error().code() == KafkaError._PARTITION_EOF:
                    continue
                print(f"Consumer error: {msg.error()}", file=sys.stderr)
                continue

            consumed += 1
            record = decode_trade(msg.value())
            if record is None:
                malformed += 1
                print(f"Skipping malformed message at offset {msg.offset()}",
                      file=sys.stderr)
                continue

            aggregator.ingest(record)
            published = publish_new_alerts(
                aggregator, producer, args.output_topic, published,
            )

            if consumed % 1000 == 0:
                producer.flush()

            if consumed % 500 == 0:
                print(f"  ... {consumed} trades consumed, "
                      f"{len(aggregator.offenders())} offenders, "
                      f"{aggregator.well_behaved_count()} well-behaved")
    finally:
        producer.flush()
        consumer.close()
        print(f"Done. {consumed} trades consumed ({malformed} malformed, "
              f"{aggregator.dropped_invalid} invalid), {published} alerts produced.")


if __name__ == "__main__":
    main()
