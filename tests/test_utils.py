"""Tests for shared utility functions."""

import re
from datetime import datetime, timezone

import pytest

from src.utils import (
    format_phone,
    generate_session_id,
    generate_unique_id,
    iso_timestamp,
    normalize_email,
    normalize_key,
    normalize_phone,
    parse_iso_timestamp,
    round2,
)


class TestNormalizePhone:
    def test_strips_spaces(self):
        assert normalize_phone("651 555 0142") == "6515550142"

    def test_strips_dashes(self):
        assert normalize_phone("651-555-0142") == "6515550142"

    def test_strips_parentheses(self):
        assert normalize_phone("(651) 555-0142") == "6515550142"

    def test_drops_country_code(self):
        assert normalize_phone("+1 651 555 0142") == "6515550142"

    def test_clean_number_unchanged(self):
        assert normalize_phone("6515550142") == "6515550142"

    def test_strips_whitespace(self):
        assert normalize_phone("  6515550142  ") == "6515550142"

    def test_short_number_not_padded(self):
        assert normalize_phone("555-0142") == "5550142"


class TestFormatPhone:
    def test_ten_digits(self):
        assert format_phone("651.555.0142") == "(651) 555-0142"

    def test_other_lengths_unchanged(self):
        assert format_phone("555-0142") == "555-0142"


class TestNormalizeKeys:
    def test_email_lowercased(self):
        assert normalize_email("  Jo@Example.COM ") == "jo@example.com"

    @pytest.mark.parametrize("raw,expected", [
        ("Double Hung", "double-hung"),
        ("aluminum_clad", "aluminum-clad"),
        ("  Low  E Coating ", "low-e-coating"),
        ("casement", "casement"),
    ])
    def test_catalog_key(self, raw, expected):
        assert normalize_key(raw) == expected


class TestRound2:
    def test_half_to_even_down(self):
        assert round2(0.125) == 0.12

    def test_half_to_even_up(self):
        assert round2(0.135) == 0.14

    def test_uses_shortest_repr(self):
        # 2.675 is stored as 2.67499999...; the decimal repr decides.
        assert round2(2.675) == 2.68

    def test_plain_rounding(self):
        assert round2(283.5756) == 283.58


class TestTimestamps:
    def test_iso_has_z_suffix(self):
        moment = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)
        assert iso_timestamp(moment) == "2025-03-15T10:00:00Z"

    def test_round_trip(self):
        moment = datetime(2025, 3, 15, 10, 0, 30, tzinfo=timezone.utc)
        assert parse_iso_timestamp(iso_timestamp(moment)) == moment

    def test_parse_rejects_garbage(self):
        with pytest.raises(ValueError):
            parse_iso_timestamp("yesterday")


class TestIds:
    def test_unique_id_format(self):
        assert re.fullmatch(r"quote_\d{13}_[0-9a-z]{8}", generate_unique_id("quote"))

    def test_session_prefix(self):
        assert generate_session_id().startswith("wq_sess_")

    def test_ids_differ(self):
        assert len({generate_unique_id("x") for _ in range(50)}) == 50
