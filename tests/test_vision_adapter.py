"""Tests for the vision adapter: image gate, parsing, scoring and degradation."""

import asyncio
import dataclasses
import hashlib

import pytest

from src.config import TimeoutConfig, VisionConfig
from src.errors import ErrorKind, UpstreamRateLimited, UpstreamTimeout, UpstreamUnavailable
from src.integrations.vision import (
    OpenAIVisionClient,
    VisionAdapter,
    check_measurement_plausibility,
    coerce_analysis,
    decode_image_data,
    detect_image_format,
    parse_json_object,
    quality_score,
)
from src.schemas.analysis_schema import AnalysisContext, WindowAnalysis
from tests.conftest import (
    ANALYSIS_REPLY,
    FIXED_NOW,
    JPEG_BYTES,
    PNG_BYTES,
    FakeVisionClient,
    image_payload,
    make_window,
)

MEASUREMENT_REPLY = (
    '{"isValid": true, "confidence": 75, "issues": ["Sash may be oversized"],'
    ' "recommendations": ["Confirm with installer"]}'
)


class SlowVisionClient(FakeVisionClient):
    async def complete(self, *args, **kwargs):
        await asyncio.sleep(0.5)
        return await super().complete(*args, **kwargs)


def _adapter(client, **config_changes) -> VisionAdapter:
    return VisionAdapter(
        client,
        config=dataclasses.replace(VisionConfig(), **config_changes),
        timeouts=dataclasses.replace(TimeoutConfig(), vision_sec=0.05),
        clock=lambda: FIXED_NOW,
    )


class TestImageHelpers:
    def test_decode_data_url(self):
        assert decode_image_data(image_payload(PNG_BYTES)) == PNG_BYTES

    def test_decode_bare_base64_with_line_breaks(self):
        encoded = image_payload(JPEG_BYTES, data_url=False)
        wrapped = encoded[:10] + "\n" + encoded[10:]
        assert decode_image_data(wrapped) == JPEG_BYTES

    def test_decode_rejects_garbage(self):
        with pytest.raises(ValueError):
            decode_image_data("%%% not base64 %%%")

    @pytest.mark.parametrize("data,expected", [
        (PNG_BYTES, "image/png"),
        (JPEG_BYTES, "image/jpeg"),
        (b"RIFF\x00\x00\x00\x00WEBPVP8 ", "image/webp"),
        (b"GIF89a" + b"\x00" * 10, None),
    ])
    def test_format_detection(self, data, expected):
        assert detect_image_format(data) == expected


class TestParsing:
    def test_plain_json(self):
        assert parse_json_object('{"a": 1}') == {"a": 1}

    def test_json_wrapped_in_prose(self):
        assert parse_json_object('Sure! Here it is: {"a": 1} Hope that helps.') == {"a": 1}

    @pytest.mark.parametrize("text", ["no json here", "[1, 2]", "{broken"])
    def test_rejects_non_objects(self, text):
        with pytest.raises(ValueError):
            parse_json_object(text)

    def test_coerce_loose_values(self):
        analysis = coerce_analysis({
            "windowType": "",
            "material": "Aluminum Clad",
            "estimatedWidth": "-3",
            "estimatedHeight": "40",
            "confidence": 150,
            "recommendations": "Replace the sash",
        })
        assert analysis.window_type == "unknown"
        assert analysis.material == "aluminum-clad"
        assert analysis.estimated_width is None
        assert analysis.estimated_height == 40.0
        assert analysis.confidence == 100.0
        assert analysis.recommendations == ["Replace the sash"]


class TestQualityScore:
    def test_empty_analysis_scores_zero(self):
        assert quality_score(WindowAnalysis()) == 0

    def test_measurements_and_type_only(self):
        analysis = WindowAnalysis(window_type="casement", estimated_width=30, estimated_height=40)
        assert quality_score(analysis) == 50

    def test_low_confidence_not_rewarded(self):
        analysis = WindowAnalysis(confidence=60)
        assert quality_score(analysis) == 0


class TestPlausibility:
    def test_typical_window(self):
        check = check_measurement_plausibility(36, 48)
        assert check.is_valid
        assert check.confidence == 85.0
        assert check.issues == []
        assert check.recommendations == []
        assert check.quality_score == 100

    def test_oversized_and_skewed(self):
        check = check_measurement_plausibility(200, 48)
        assert not check.is_valid
        assert len(check.issues) == 2
        assert check.confidence == 60.0
        assert check.recommendations == [
            "Re-measure the rough opening",
            "Schedule a professional measurement",
        ]
        assert check.quality_score == 30


class TestAnalyzeImage:
    @pytest.mark.asyncio
    async def test_success(self):
        client = FakeVisionClient(replies=[ANALYSIS_REPLY])
        adapter = _adapter(client)
        result = await adapter.analyze_image(
            PNG_BYTES, AnalysisContext(session_id="s1", source="mobile", device_type="mobile")
        )
        assert result.ok
        analysis = result.value
        assert analysis.session_id == "s1"
        assert analysis.analysis.window_type == "double-hung"
        assert analysis.quality_score == 100
        assert analysis.image_digest == hashlib.sha256(PNG_BYTES).hexdigest()
        assert analysis.timestamp == FIXED_NOW
        call = client.calls[0]
        assert call["image_data_url"].startswith("data:image/png;base64,")
        assert "phone" in call["user_text"]

    @pytest.mark.asyncio
    async def test_unsupported_format_never_calls_model(self):
        client = FakeVisionClient(replies=[ANALYSIS_REPLY])
        result = await _adapter(client).analyze_image(b"GIF89a" + b"\x00" * 10, AnalysisContext("s1"))
        assert result.error.kind == ErrorKind.INVALID_IMAGE
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_oversized_image(self):
        client = FakeVisionClient(replies=[ANALYSIS_REPLY])
        result = await _adapter(client, max_image_bytes=16).analyze_image(PNG_BYTES, AnalysisContext("s1"))
        assert result.error.kind == ErrorKind.INVALID_IMAGE

    @pytest.mark.asyncio
    async def test_malformed_reply(self):
        client = FakeVisionClient(replies=["I cannot see a window."])
        result = await _adapter(client).analyze_image(PNG_BYTES, AnalysisContext("s1"))
        assert result.error.kind == ErrorKind.MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_timeout(self):
        client = SlowVisionClient(replies=[ANALYSIS_REPLY])
        result = await _adapter(client).analyze_image(PNG_BYTES, AnalysisContext("s1"))
        assert result.error.kind == ErrorKind.UPSTREAM_TIMEOUT

    @pytest.mark.asyncio
    async def test_non_list_recommendations_dropped(self):
        client = FakeVisionClient(replies=['{"windowType": "casement", "recommendations": 5}'])
        result = await _adapter(client).analyze_image(PNG_BYTES, AnalysisContext("s1"))
        assert result.ok
        assert result.value.analysis.window_type == "casement"
        assert result.value.analysis.recommendations == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error,kind", [
        (UpstreamTimeout("read timed out"), ErrorKind.UPSTREAM_TIMEOUT),
        (UpstreamRateLimited("slow down"), ErrorKind.RATE_LIMITED),
        (UpstreamUnavailable("502"), ErrorKind.UPSTREAM_UNAVAILABLE),
    ])
    async def test_upstream_errors_typed(self, error, kind):
        client = FakeVisionClient(error=error)
        result = await _adapter(client).analyze_image(PNG_BYTES, AnalysisContext("s1"))
        assert result.error.kind == kind


class TestCheckMeasurements:
    @pytest.mark.asyncio
    async def test_merges_model_verdict(self):
        client = FakeVisionClient(replies=[MEASUREMENT_REPLY])
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert check.is_valid
        assert check.confidence == 75.0
        assert check.issues == ["Sash may be oversized"]
        assert check.recommendations == ["Confirm with installer"]
        assert check.quality_score == 60
        assert not check.degraded

    @pytest.mark.asyncio
    async def test_model_can_reject(self):
        client = FakeVisionClient(replies=['{"isValid": false, "issues": []}'])
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert not check.is_valid
        assert "Re-measure the rough opening" in check.recommendations

    @pytest.mark.asyncio
    async def test_scalar_issues_ignored(self):
        client = FakeVisionClient(replies=['{"isValid": true, "issues": 3}'])
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert check.issues == []
        assert not check.degraded

    @pytest.mark.asyncio
    async def test_string_recommendation_kept_whole(self):
        client = FakeVisionClient(replies=['{"isValid": true, "recommendations": "Check sill"}'])
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert check.recommendations == ["Check sill"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("flag,valid", [
        ('"false"', False),
        ('"No"', False),
        ("0", False),
        ('"true"', True),
        ("null", True),
    ])
    async def test_is_valid_parsed_explicitly(self, flag, valid):
        client = FakeVisionClient(replies=['{"isValid": %s}' % flag])
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert check.is_valid is valid

    @pytest.mark.asyncio
    async def test_degrades_to_local_check(self):
        client = FakeVisionClient(error=UpstreamUnavailable("down"))
        check = await _adapter(client).check_measurements(36, 48, "double-hung")
        assert check.degraded
        assert check.is_valid
        assert check.confidence == 85.0


class TestExplainQuote:
    @pytest.mark.asyncio
    async def test_explanation_text(self, engine):
        quote = (await engine.calculate_quote([make_window()])).value
        client = FakeVisionClient(replies=["  Your new windows will cut drafts.  "])
        result = await _adapter(client).explain_quote(quote, {"customerName": "Jordan"})
        assert result.value == "Your new windows will cut drafts."
        call = client.calls[0]
        assert call["json_mode"] is False
        assert call["image_data_url"] is None
        assert "Jordan" in call["user_text"]
        assert "salesMarkup" not in call["user_text"]
        assert "hiddenMarkup" not in call["user_text"]

    @pytest.mark.asyncio
    async def test_empty_explanation_is_malformed(self, engine):
        quote = (await engine.calculate_quote([make_window()])).value
        client = FakeVisionClient(replies=["   "])
        result = await _adapter(client).explain_quote(quote)
        assert result.error.kind == ErrorKind.MALFORMED_RESPONSE


class TestClientConfiguration:
    @pytest.mark.asyncio
    async def test_unconfigured_openai_client_raises(self):
        client = OpenAIVisionClient(api_key=None)
        assert not client.configured
        with pytest.raises(UpstreamUnavailable):
            await client.complete("system", "user")

    def test_health_reports_configuration(self):
        assert _adapter(FakeVisionClient(configured=False)).health()["status"] == "degraded"
        assert _adapter(FakeVisionClient()).health()["status"] == "healthy"
