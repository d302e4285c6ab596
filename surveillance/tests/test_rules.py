"""Tests for the excessive-cancellation rule, ratio math and YAML loading."""

from pathlib import Path

import pytest

from surveillance.events import Kind, TradeEvent
from surveillance.rules import ExcessiveCancellation
from surveillance.rules.excessive_cancellation import ratio_for_window, volumes
from surveillance.rules.loader import DEFAULT_RULE_PATH, load_rule, load_rules


def _ev(kind, amount, ts=1_000, company="Acme Co", code=None):
    if code is None:
        code = {Kind.CANCEL: "F", Kind.PURCHASE: "D"}.get(kind, "X")
    return TradeEvent(timestamp=ts, company=company, code=code, kind=kind, amount=amount)


def _cancel(amount, ts=1_000):
    return _ev(Kind.CANCEL, amount, ts)


def _purchase(amount, ts=1_000):
    return _ev(Kind.PURCHASE, amount, ts)


# ---------------------------------------------------------------------------
# Ratio
# ---------------------------------------------------------------------------

class TestRatio:
    def test_cancelled_share_of_total_volume(self):
        assert ratio_for_window([_cancel(40), _purchase(60)]) == pytest.approx(0.4)

    def test_only_cancellations(self):
        assert ratio_for_window([_cancel(100)]) == 1.0

    def test_only_purchases(self):
        assert ratio_for_window([_purchase(5)]) == 0.0

    def test_sums_volume_not_event_count(self):
        events = [_purchase(1)] * 10 + [_cancel(100)]
        assert ratio_for_window(events) == pytest.approx(100 / 110)

    def test_empty_window_is_zero(self):
        assert ratio_for_window([]) == 0.0

    def test_zero_total_volume_is_zero_not_nan(self):
        assert ratio_for_window([_purchase(0), _cancel(0)]) == 0.0

    def test_order_independent(self):
        events = [_cancel(10), _purchase(30), _cancel(25), _purchase(5)]
        assert ratio_for_window(events) == ratio_for_window(list(reversed(events)))

    def test_unmapped_codes_count_for_neither_side(self):
        events = [_cancel(10), _ev(None, 1_000, code="X")]
        assert volumes(events) == (10, 0)
        assert ratio_for_window(events) == 1.0


# ---------------------------------------------------------------------------
# Trigger
# ---------------------------------------------------------------------------

class TestTrigger:
    def setup_method(self):
        self.rule = ExcessiveCancellation()

    def test_defaults(self):
        assert self.rule.window_seconds == 60
        assert self.rule.threshold == 0.33
        assert self.rule.codes == {"F": Kind.CANCEL, "D": Kind.PURCHASE}

    def test_exactly_at_threshold_fires(self):
        """Boundary: 33 / 100 == 0.33 and the comparison is >=."""
        assert self.rule.trigger([_cancel(33), _purchase(67)])

    def test_just_below_threshold_does_not_fire(self):
        assert not self.rule.trigger([_cancel(32), _purchase(68)])

    def test_above_threshold_fires(self):
        assert self.rule.trigger([_cancel(40), _purchase(60)])

    def test_empty_window_does_not_fire(self):
        assert not self.rule.trigger([])

    def test_zero_volume_does_not_fire(self):
        assert not self.rule.trigger([_purchase(0), _purchase(0)])

    def test_custom_threshold(self):
        rule = ExcessiveCancellation(threshold=0.5)
        assert not rule.trigger([_cancel(40), _purchase(60)])
        assert rule.trigger([_cancel(50), _purchase(50)])


class TestEvidence:
    def test_evidence_summarizes_window(self):
        events = [_cancel(40, ts=1_000), _purchase(60, ts=1_045)]
        ev = ExcessiveCancellation().evidence(events)
        assert ev == {
            "cancelled_volume": 40,
            "purchased_volume": 60,
            "ratio": 0.4,
            "event_count": 2,
            "span_seconds": 45,
        }

    def test_empty_window_has_no_evidence(self):
        assert ExcessiveCancellation().evidence([]) == {}


class TestGroupKey:
    def test_groups_by_company(self):
        assert ExcessiveCancellation().group_key(_ev(Kind.CANCEL, 1, company="Bank of Mars")) == "Bank of Mars"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

_VALID_YAML = """\
title: Strict Cancellations
id: strict_cancellations
level: critical
custom:
  window_seconds: 30
  threshold: 0.25
  codes:
    C: cancel
    P: purchase
"""


def _write(tmp_path, text, name="rule.yml"):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestLoader:
    def test_default_rule_file_matches_built_in_defaults(self):
        rule = load_rule()
        default = ExcessiveCancellation()
        assert rule.id == "excessive_cancellations"
        assert rule.severity == "high"
        assert rule.window_seconds == default.window_seconds
        assert rule.threshold == default.threshold
        assert rule.codes == default.codes

    def test_default_rule_path_exists(self):
        assert Path(DEFAULT_RULE_PATH).is_file()

    def test_custom_rule(self, tmp_path):
        rule = load_rule(_write(tmp_path, _VALID_YAML))
        assert rule.id == "strict_cancellations"
        assert rule.name == "Strict Cancellations"
        assert rule.severity == "critical"
        assert rule.window_seconds == 30
        assert rule.threshold == 0.25
        assert rule.codes == {"C": Kind.CANCEL, "P": Kind.PURCHASE}

    def test_codes_default_when_omitted(self, tmp_path):
        text = _VALID_YAML.split("  codes:")[0]
        rule = load_rule(_write(tmp_path, text))
        assert rule.codes == {"F": Kind.CANCEL, "D": Kind.PURCHASE}

    def test_informational_level_maps_to_low(self, tmp_path):
        text = _VALID_YAML.replace("level: critical", "level: informational")
        assert load_rule(_write(tmp_path, text)).severity == "low"

    def test_missing_required_field_raises(self, tmp_path):
        text = _VALID_YAML.replace("level: critical\n", "")
        with pytest.raises(ValueError, match="level"):
            load_rule(_write(tmp_path, text))

    def test_missing_custom_field_raises(self, tmp_path):
        text = _VALID_YAML.replace("  threshold: 0.25\n", "")
        with pytest.raises(ValueError, match="threshold"):
            load_rule(_write(tmp_path, text))

    def test_unknown_kind_target_raises(self, tmp_path):
        text = _VALID_YAML.replace("P: purchase", "P: refund")
        with pytest.raises(ValueError, match="refund"):
            load_rule(_write(tmp_path, text))

    def test_invalid_yaml_raises_value_error(self, tmp_path):
        with pytest.raises(ValueError):
            load_rule(_write(tmp_path, "title: [unclosed\n"))

    def test_non_mapping_document_raises(self, tmp_path):
        with pytest.raises(ValueError):
            load_rule(_write(tmp_path, "- just\n- a list\n"))

    def test_load_rules_from_directory(self, tmp_path):
        _write(tmp_path, _VALID_YAML, "b.yml")
        _write(tmp_path, _VALID_YAML.replace("strict_cancellations", "other"), "a.yml")
        _write(tmp_path, "not a rule", "ignored.txt")
        rules = load_rules(tmp_path)
        assert [r.id for r in rules] == ["other", "strict_cancellations"]

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_rules(tmp_path / "nope")


class TestLoaderTypes:
    """Wrongly typed parameters are rejected at load time, not during ingest."""

    def test_quoted_threshold_raises(self, tmp_path):
        text = _VALID_YAML.replace("threshold: 0.25", "threshold: '0.25'")
        with pytest.raises(ValueError, match="rule.yml: threshold"):
            load_rule(_write(tmp_path, text))

    @pytest.mark.parametrize("value", ["true", ".inf", ".nan"])
    def test_non_numeric_threshold_raises(self, tmp_path, value):
        text = _VALID_YAML.replace("threshold: 0.25", f"threshold: {value}")
        with pytest.raises(ValueError, match="threshold"):
            load_rule(_write(tmp_path, text))

    def test_integer_threshold_is_accepted(self, tmp_path):
        text = _VALID_YAML.replace("threshold: 0.25", "threshold: 1")
        assert load_rule(_write(tmp_path, text)).threshold == 1

    def test_empty_custom_block_raises(self, tmp_path):
        text = "title: Empty\nid: empty\nlevel: low\ncustom:\n"
        with pytest.raises(ValueError, match="rule.yml: 'custom' must be a mapping"):
            load_rule(_write(tmp_path, text))

    def test_custom_as_list_raises(self, tmp_path):
        text = "title: Listy\nid: listy\nlevel: low\ncustom:\n  - 60\n  - 0.33\n"
        with pytest.raises(ValueError, match="custom"):
            load_rule(_write(tmp_path, text))

    @pytest.mark.parametrize("value", ["'30'", "-1", "true", "30.5"])
    def test_bad_window_seconds_raises(self, tmp_path, value):
        text = _VALID_YAML.replace("window_seconds: 30", f"window_seconds: {value}")
        with pytest.raises(ValueError, match="window_seconds"):
            load_rule(_write(tmp_path, text))

    def test_zero_window_seconds_is_accepted(self, tmp_path):
        text = _VALID_YAML.replace("window_seconds: 30", "window_seconds: 0")
        assert load_rule(_write(tmp_path, text)).window_seconds == 0

    def test_codes_as_list_raises(self, tmp_path):
        text = _VALID_YAML.split("  codes:")[0] + "  codes: [C, P]\n"
        with pytest.raises(ValueError, match="codes"):
            load_rule(_write(tmp_path, text))


class TestLoaderGroupKey:
    def test_company_group_key_is_accepted(self, tmp_path):
        text = _VALID_YAML.replace("  threshold: 0.25\n", "  threshold: 0.25\n  group_key: company\n")
        assert load_rule(_write(tmp_path, text)).id == "strict_cancellations"

    def test_other_group_key_raises(self, tmp_path):
        text = _VALID_YAML.replace("  threshold: 0.25\n", "  threshold: 0.25\n  group_key: desk\n")
        with pytest.raises(ValueError, match="group_key 'desk'"):
            load_rule(_write(tmp_path, text))
