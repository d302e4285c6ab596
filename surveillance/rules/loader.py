"""Load excessive-cancellation rule parameters from Sigma-style YAML."""

import math
from numbers import Real
from pathlib import Path
import yaml

from surveillance.events import Kind
from surveillance.rules.excessive_cancellation import ExcessiveCancellation

DEFAULT_RULE_PATH = Path(__file__).resolve().parent / "excessive_cancellation.yml"

_REQUIRED_FIELDS = ("title", "id", "level", "custom")
_REQUIRED_CUSTOM = ("window_seconds", "threshold")

# Sigma 'level' -> our severity vocabulary.
_LEVEL_MAP = {
    "informational": "low",
    "low": "low",
    "medium": "medium",
    "high": "high",
    "critical": "critical",
}


def load_rules(directory: str | Path) -> list[ExcessiveCancellation]:
    """Glob *.yml in *directory*, parse each, return rule instances."""
    directory = Path(directory)
    if not directory.is_dir():
        raise FileNotFoundError(f"Rule directory not found: {directory}")

    return [load_rule(path) for path in sorted(directory.glob("*.yml"))]


def load_rule(path: str | Path = DEFAULT_RULE_PATH) -> ExcessiveCancellation:
    """Load a single rule file."""
    path = Path(path)
    definition = _parse_and_validate(path)
    custom = definition["custom"]

    codes = None
    if "codes" in custom:
        codes = _parse_codes(path, custom["codes"])

    return ExcessiveCancellation(
        window_seconds=custom["window_seconds"],
        threshold=custom["threshold"],
        codes=codes,
        rule_id=str(definition["id"]),
        name=definition["title"],
        severity=_LEVEL_MAP.get(definition["level"], definition["level"]),
    )


def _parse_and_validate(path: Path) -> dict:
    with open(path) as f:
        try:
            definition = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"{path.name}: invalid YAML ({e})") from e

    if not isinstance(definition, dict):
        raise ValueError(f"{path.name}: expected a mapping at top level")

    for field in _REQUIRED_FIELDS:
        if field not in definition:
            raise ValueError(f"{path.name}: missing required field '{field}'")

    custom = definition["custom"]
    if not isinstance(custom, dict):
        raise ValueError(f"{path.name}: 'custom' must be a mapping")
    for field in _REQUIRED_CUSTOM:
        if field not in custom:
            raise ValueError(
                f"{path.name}: missing required custom field '{field}'"
            )

    window = custom["window_seconds"]
    if isinstance(window, bool) or not isinstance(window, int) or window < 0:
        raise ValueError(
            f"{path.name}: window_seconds must be a non-negative integer, got {window!r}"
        )

    threshold = custom["threshold"]
    if (isinstance(threshold, bool) or not isinstance(threshold, Real)
            or not math.isfinite(threshold)):
        raise ValueError(
            f"{path.name}: threshold must be a number, got {threshold!r}"
        )

    if "codes" in custom and not isinstance(custom["codes"], dict):
        raise ValueError(f"{path.name}: 'codes' must be a mapping")

    # Windows are always keyed per company.
    group_key = custom.get("group_key", "company")
    if group_key != "company":
        raise ValueError(
            f"{path.name}: unsupported group_key '{group_key}', only 'company'"
        )

    return definition


def _parse_codes(path: Path, raw: dict) -> dict[str, Kind]:
    codes = {}
    for code, target in raw.items():
        try:
            codes[str(code)] = Kind(target)
        except ValueError:
            raise ValueError(
                f"{path.name}: code '{code}' maps to unknown kind '{target}'"
            ) from None
    return codes
