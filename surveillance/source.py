"""CSV trade source.

Reads a headerless ``dateTime,company,type,amount`` file into records the
aggregator understands.  Cells that don't parse become ``None`` so the record
is rejected by the aggregator's own validation rather than here.
"""

from pathlib import Path

import pandas as pd

COLUMNS = ["dateTime", "company", "type", "amount"]


class SourceError(Exception):
    """Input could not be turned into records."""


class SourceUnavailable(SourceError):
    """The file is missing or can't be opened."""


class SourceMalformed(SourceError):
    """The file exists but can't be tokenized as CSV."""


class CsvTradeSource:

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def __call__(self) -> list[dict]:
        return read_trades(self.path)

    def __repr__(self):
        return f"CsvTradeSource({str(self.path)!r})"


def read_trades(path: str | Path) -> list[dict]:
    """Parse the whole file.  Lines with more than four fields are skipped."""
    path = Path(path)
    if not path.is_file():
        raise SourceUnavailable(f"The file does not exist: {path}")

    try:
        df = pd.read_csv(
            path,
            header=None,
            names=COLUMNS,
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            skip_blank_lines=True,
            on_bad_lines="skip",
        )
    except pd.errors.EmptyDataError:
        return []
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise SourceMalformed(f"Could not parse {path}: {e}") from e
    except OSError as e:
        raise SourceUnavailable(f"Could not open {path}: {e}") from e

    timestamps = pd.to_datetime(
        df["dateTime"].map(_text), errors="coerce", utc=True, format="mixed",
    )
    amounts = pd.to_numeric(df["amount"].map(_text), errors="coerce")

    records = []
    for ts, company, code, amount in zip(timestamps, df["company"], df["type"], amounts):
        records.append({
            "timestamp": None if pd.isna(ts) else int(ts.timestamp()),
            "company": _text(company),
            "kind": _text(code),
            "amount": None if pd.isna(amount) else float(amount),
        })
    return records


def _text(value) -> str | None:
    # Short rows come back as NaN even with dtype=str.
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None
