"""Trade event model and record validation.

Records arrive as plain dicts (from CSV rows or Kafka JSON) and are only
turned into a ``TradeEvent`` once they pass validation.  Invalid records are
not an error: the aggregator drops them and moves on.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from numbers import Real

FIELDS = ("timestamp", "company", "kind", "amount")


class Kind(Enum):
    PURCHASE = "purchase"
    CANCEL = "cancel"


# The upstream feed books "F" volume on the cancelled side and "D" volume on
# the purchased side.  Keep it that way even though the letters suggest the
# opposite.
DEFAULT_CODES = {"F": Kind.CANCEL, "D": Kind.PURCHASE}


@dataclass(frozen=True)
class TradeEvent:
    timestamp: float
    company: str
    code: str
    kind: Kind | None  # None for codes the rule doesn't map
    amount: float


def is_valid_record(record) -> bool:
    """Exactly the four trade fields, none of them null, each well-typed.

    Beyond presence, a record is rejected when:

    - ``timestamp`` or ``amount`` is not a finite real number (strings,
      booleans, ``inf`` and ``nan`` all fail),
    - ``amount`` is negative,
    - ``company`` is not a non-empty string,
    - ``kind`` is neither a string code nor a ``Kind``.

    Unknown kind codes are still valid.
    """
    if not isinstance(record, Mapping) or set(record) != set(FIELDS):
        return False
    if any(record[f] is None for f in FIELDS):
        return False

    ts, company, kind, amount = (record[f] for f in FIELDS)
    if not _is_number(ts):
        return False
    if not isinstance(company, str) or not company:
        return False
    if not isinstance(kind, (str, Kind)):
        return False
    return _is_number(amount) and amount >= 0


def to_event(record: dict, codes: dict[str, Kind]) -> TradeEvent | None:
    """Build a TradeEvent from a record, or None if the record is invalid."""
    if not is_valid_record(record):
        return None
    kind = record["kind"]
    if isinstance(kind, Kind):
        code = kind.value
    else:
        code = kind
        kind = codes.get(code)
    return TradeEvent(
        timestamp=record["timestamp"],
        company=record["company"],
        code=code,
        kind=kind,
        amount=record["amount"],
    )


def _is_number(value) -> bool:
    return (
        isinstance(value, Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
    )
