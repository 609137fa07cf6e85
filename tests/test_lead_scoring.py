"""Tests for lead priority, follow-up scheduling and tagging."""

from datetime import timedelta

import pytest

from src.config import LeadConfig
from src.orchestrator.lead_scoring import (
    customer_completeness,
    derive_lead_priority,
    detect_device_type,
    follow_up_date,
    generate_tags,
    merge_tags,
    value_tag,
)
from src.schemas.customer_schema import LeadPriority
from src.schemas.message_schema import RequestContext
from tests.conftest import FIXED_NOW, make_window


class TestDeviceType:
    @pytest.mark.parametrize("source,agent,expected", [
        ("mobile", None, "mobile"),
        ("popup", None, "mobile"),
        ("website", "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0)", "mobile"),
        ("website", "Mozilla/5.0 (Linux; Android 14)", "mobile"),
        ("website", "Mozilla/5.0 (iPad; CPU OS 17_0)", "tablet"),
        ("website", "Mozilla/5.0 (Windows NT 10.0; Win64; x64)", "desktop"),
        ("widget", None, "desktop"),
        (None, None, "unknown"),
        ("", "", "unknown"),
    ])
    def test_classification(self, source, agent, expected):
        assert detect_device_type(source, agent) == expected


class TestLeadPriority:
    def test_high_at_threshold(self):
        assert derive_lead_priority(5000) == LeadPriority.HIGH

    def test_medium_at_threshold(self):
        assert derive_lead_priority(2000) == LeadPriority.MEDIUM

    def test_low_below_medium(self):
        assert derive_lead_priority(1999.99) == LeadPriority.LOW

    def test_mobile_mode_promotes_to_medium(self):
        assert derive_lead_priority(500, mode="mobile") == LeadPriority.MEDIUM

    def test_ai_analysis_promotes_to_medium(self):
        assert derive_lead_priority(500, has_ai_analysis=True) == LeadPriority.MEDIUM

    def test_engagement_never_exceeds_medium(self):
        assert derive_lead_priority(1000, mode="mobile", has_ai_analysis=True) == LeadPriority.MEDIUM

    def test_custom_thresholds(self):
        leads = LeadConfig(high_threshold=1000, medium_threshold=500)
        assert derive_lead_priority(1200, leads=leads) == LeadPriority.HIGH


class TestFollowUp:
    @pytest.mark.parametrize("priority,hours", [
        (LeadPriority.HIGH, 2),
        (LeadPriority.MEDIUM, 24),
        (LeadPriority.LOW, 72),
    ])
    def test_delay_by_priority(self, priority, hours):
        assert follow_up_date(priority, now=FIXED_NOW) == FIXED_NOW + timedelta(hours=hours)

    def test_engaged_lead_followed_up_fast(self):
        due = follow_up_date(LeadPriority.LOW, engaged=True, now=FIXED_NOW)
        assert due == FIXED_NOW + timedelta(hours=2)


class TestTags:
    def test_value_tags(self):
        assert value_tag(5000) == "high-value"
        assert value_tag(4421.58) == "medium-value"
        assert value_tag(500) == "low-value"

    def test_generated_tags_ordered_and_unique(self):
        ctx = RequestContext(session_id="s1", source="website", mode="standard", device_type="desktop")
        specs = [
            make_window(quantity=2),
            make_window(window_type="casement", material="wood"),
            make_window(quantity=3),
        ]
        tags = generate_tags(ctx, 4421.58, specs, has_ai_analysis=True)
        assert tags == [
            "source:website",
            "device:desktop",
            "mode:standard",
            "ai-analyzed",
            "medium-value",
            "window-type:double-hung",
            "window-type:casement",
            "material:vinyl",
            "material:wood",
            "windows:6",
        ]

    def test_no_windows_tag_without_specs(self):
        ctx = RequestContext(session_id="s1")
        tags = generate_tags(ctx, 0)
        assert not any(tag.startswith("windows:") for tag in tags)
        assert "low-value" in tags

    def test_merge_replaces_families(self):
        merged = merge_tags(
            ["source:website", "high-value", "vip", "material:wood"],
            ["source:mobile", "low-value", "material:vinyl"],
        )
        assert merged == ["vip", "source:mobile", "low-value", "material:vinyl"]

    def test_merge_with_nothing_stored(self):
        assert merge_tags(None, ["a", "a", "b"]) == ["a", "b"]

    def test_merge_ignores_string_value(self):
        assert merge_tags('["broken"]', ["source:website"]) == ["source:website"]


class TestCompleteness:
    def test_all_fields(self):
        assert customer_completeness(
            {"name": "Jo", "email": "jo@example.com", "phone": "6515550199", "address": "12 Lake St"}
        ) == 100

    def test_partial(self):
        assert customer_completeness({"name": "Jo", "email": "jo@example.com"}) == 50

    def test_empty_values_do_not_count(self):
        assert customer_completeness({"name": "Jo", "phone": "", "address": None}) == 25
