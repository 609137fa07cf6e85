"""
Vision LLM adapter.

Wraps the external model behind ``VisionClient`` and turns its answers
into typed results: a structured ``AnalysisResult`` for photos, a
``MeasurementCheck`` for measurement review, and plain text for quote
explanations. Size and format checks happen before any network call.

Failure kinds surfaced: invalid_image, rate_limited, upstream_unavailable,
upstream_timeout and malformed_response. None of them are fatal to the
larger pipeline.
"""

import asyncio
import base64
import binascii
import hashlib
import json
import logging
import re
from typing import Any, Callable, Optional, Protocol

import openai
from openai import AsyncOpenAI

from src.config import TimeoutConfig, VisionConfig, settings
from src.errors import (
    ErrorKind,
    Result,
    UpstreamError,
    UpstreamRateLimited,
    UpstreamTimeout,
    UpstreamUnavailable,
)
from src.prompts.prompt_templates import (
    build_analysis_prompt,
    build_explanation_prompt,
    build_measurement_prompt,
)
from src.prompts.system_prompts import (
    EXPLANATION_SYSTEM_PROMPT,
    MEASUREMENT_SYSTEM_PROMPT,
    VISION_SYSTEM_PROMPT,
)
from src.schemas.analysis_schema import (
    UNKNOWN,
    AnalysisContext,
    AnalysisResult,
    MeasurementCheck,
    WindowAnalysis,
)
from src.schemas.pricing_schema import Quote
from src.utils import generate_unique_id, normalize_key, utc_now

logger = logging.getLogger(__name__)

# Quality score weights
QUALITY_WEIGHTS = {
    "measurements": 0.3,
    "window_type": 0.2,
    "material": 0.2,
    "condition": 0.1,
    "confidence": 0.1,
    "recommendations": 0.1,
}
CONFIDENT_THRESHOLD = 70

# Measurement plausibility bounds, inches
TYPICAL_WIDTH = (12.0, 120.0)
TYPICAL_HEIGHT = (12.0, 144.0)
COMMON_RANGE = (18.0, 96.0)
DEFAULT_MEASUREMENT_CONFIDENCE = 85.0

_DATA_URL = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


def detect_image_format(data: bytes) -> Optional[str]:
    """MIME type from magic bytes for the supported formats, else None."""
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    return None


def decode_image_data(payload: str) -> bytes:
    """Decode base64 image text, with or without a data-URL prefix.

    Raises ValueError when the payload is not valid base64.
    """
    text = "".join(_DATA_URL.sub("", payload.strip()).split())
    try:
        return base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Image data is not valid base64") from None


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse a JSON object, tolerating prose around it. Raises ValueError."""
    try:
        value = json.loads(text)
    except ValueError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise ValueError("No JSON object in response") from None
        value = json.loads(text[start:end + 1])
    if not isinstance(value, dict):
        raise ValueError("Response JSON is not an object")
    return value


def _optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _text_list(value: Any) -> list[str]:
    """Model list fields as clean strings. A bare string is one item; other scalars are dropped."""
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if item is not None and str(item).strip()]


def _flag(value: Any, default: bool = True) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "yes", "1"):
            return True
        if text in ("false", "no", "0"):
            return False
    if isinstance(value, (int, float)) and value in (0, 1):
        return bool(value)
    return default


def _label(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        return UNKNOWN
    return normalize_key(value)


def coerce_analysis(raw: dict[str, Any]) -> WindowAnalysis:
    """Build a WindowAnalysis from loosely-typed model output."""
    confidence = _optional_number(raw.get("confidence"))
    return WindowAnalysis(
        window_type=_label(raw.get("windowType")),
        material=_label(raw.get("material")),
        condition=_label(raw.get("condition")),
        estimated_width=_optional_number(raw.get("estimatedWidth")),
        estimated_height=_optional_number(raw.get("estimatedHeight")),
        confidence=min(confidence, 100.0) if confidence is not None else None,
        recommendations=_text_list(raw.get("recommendations")),
    )


def quality_score(analysis: WindowAnalysis) -> int:
    """Weighted completeness of an analysis, 0-100."""
    score = 0.0
    if analysis.estimated_width and analysis.estimated_height:
        score += QUALITY_WEIGHTS["measurements"]
    if analysis.window_type != UNKNOWN:
        score += QUALITY_WEIGHTS["window_type"]
    if analysis.material != UNKNOWN:
        score += QUALITY_WEIGHTS["material"]
    if analysis.condition != UNKNOWN:
        score += QUALITY_WEIGHTS["condition"]
    if analysis.confidence is not None and analysis.confidence > CONFIDENT_THRESHOLD:
        score += QUALITY_WEIGHTS["confidence"]
    if analysis.recommendations:
        score += QUALITY_WEIGHTS["recommendations"]
    return round(score * 100)


def measurement_quality_score(
    width: float, height: float, confidence: float, issue_count: int
) -> int:
    score = 100
    score -= 20 * issue_count
    if confidence < 80:
        score -= 20
    if confidence < 60:
        score -= 20
    if not COMMON_RANGE[0] <= width <= COMMON_RANGE[1]:
        score -= 10
    if not COMMON_RANGE[0] <= height <= COMMON_RANGE[1]:
        score -= 10
    return max(0, score)


def check_measurement_plausibility(
    width: float, height: float, confidence: Optional[float] = None
) -> MeasurementCheck:
    """Local sanity check of measurements, no model involved."""
    confidence = DEFAULT_MEASUREMENT_CONFIDENCE if confidence is None else float(confidence)
    issues: list[str] = []
    is_valid = True

    if not TYPICAL_WIDTH[0] <= width <= TYPICAL_WIDTH[1]:
        issues.append(
            f"Width {width:g}in is outside the typical range of "
            f"{TYPICAL_WIDTH[0]:g}-{TYPICAL_WIDTH[1]:g}in"
        )
        is_valid = False
    if not TYPICAL_HEIGHT[0] <= height <= TYPICAL_HEIGHT[1]:
        issues.append(
            f"Height {height:g}in is outside the typical range of "
            f"{TYPICAL_HEIGHT[0]:g}-{TYPICAL_HEIGHT[1]:g}in"
        )
        is_valid = False
    if width > 3 * height or height > 4 * width:
        issues.append("Unusual aspect ratio for a residential window")
        confidence = min(confidence, 60.0)

    return _finish_check(width, height, is_valid, confidence, issues, [])


def _finish_check(
    width: float,
    height: float,
    is_valid: bool,
    confidence: float,
    issues: list[str],
    recommendations: list[str],
    degraded: bool = False,
) -> MeasurementCheck:
    recommendations = list(recommendations)
    if not is_valid and "Re-measure the rough opening" not in recommendations:
        recommendations.append("Re-measure the rough opening")
    if confidence < CONFIDENT_THRESHOLD and "Schedule a professional measurement" not in recommendations:
        recommendations.append("Schedule a professional measurement")
    return MeasurementCheck(
        is_valid=is_valid,
        confidence=confidence,
        issues=issues,
        recommendations=recommendations,
        quality_score=measurement_quality_score(width, height, confidence, len(issues)),
        degraded=degraded,
    )


class VisionClient(Protocol):
    """Transport to the vision LLM. Raises UpstreamError subclasses."""

    configured: bool

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        image_data_url: Optional[str] = None,
        json_mode: bool = True,
    ) -> str: ...


class OpenAIVisionClient:
    """Chat-completions client for an OpenAI vision model."""

    def __init__(
        self,
        api_key: Optional[str],
        config: VisionConfig = settings.vision,
        timeout_sec: float = settings.timeouts.vision_sec,
    ):
        self.config = config
        self.configured = bool(api_key)
        self._client = AsyncOpenAI(api_key=api_key, timeout=timeout_sec) if api_key else None

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        image_data_url: Optional[str] = None,
        json_mode: bool = True,
    ) -> str:
        if self._client is None:
            raise UpstreamUnavailable("Vision API key is not configured")

        content: list[dict[str, Any]] = [{"type": "text", "text": user_text}]
        if image_data_url:
            content.append({"type": "image_url", "image_url": {"url": image_data_url}})
        kwargs: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": content},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if json_mode:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APITimeoutError as exc:
            raise UpstreamTimeout(str(exc)) from exc
        except openai.RateLimitError as exc:
            raise UpstreamRateLimited(str(exc)) from exc
        except openai.APIError as exc:
            raise UpstreamUnavailable(str(exc)) from exc
        return response.choices[0].message.content or ""


class VisionAdapter:
    """Typed operations over a VisionClient."""

    def __init__(
        self,
        client: VisionClient,
        config: VisionConfig = settings.vision,
        timeouts: TimeoutConfig = settings.timeouts,
        clock: Callable = utc_now,
    ):
        self.client = client
        self.config = config
        self.timeout_sec = timeouts.vision_sec
        self.clock = clock

    async def _complete(
        self,
        system_prompt: str,
        user_text: str,
        image_data_url: Optional[str] = None,
        json_mode: bool = True,
    ) -> Result[str]:
        try:
            text = await asyncio.wait_for(
                self.client.complete(system_prompt, user_text, image_data_url, json_mode),
                timeout=self.timeout_sec,
            )
        except asyncio.TimeoutError:
            logger.warning("Vision call timed out after %.0fs", self.timeout_sec)
            return Result.failure(ErrorKind.UPSTREAM_TIMEOUT, "Vision service timed out")
        except UpstreamError as exc:
            logger.warning("Vision call failed (%s): %s", exc.kind.value, exc)
            return Result.failure(exc.kind, f"Vision service error: {exc}")
        except Exception as exc:
            logger.warning("Vision call failed unexpectedly: %s", exc)
            return Result.failure(ErrorKind.UPSTREAM_UNAVAILABLE, f"Vision service error: {exc}")
        return Result.success(text)

    def check_image(self, image: bytes) -> Result[str]:
        """Size and format gate; returns the MIME type."""
        if not image:
            return Result.failure(ErrorKind.INVALID_IMAGE, "Image is empty")
        if len(image) > self.config.max_image_bytes:
            return Result.failure(
                ErrorKind.INVALID_IMAGE,
                f"Image is {len(image)} bytes; the limit is {self.config.max_image_bytes}",
            )
        mime = detect_image_format(image)
        if mime is None:
            return Result.failure(
                ErrorKind.INVALID_IMAGE, "Unsupported image format; use JPEG, PNG or WebP"
            )
        return Result.success(mime)

    async def analyze_image(self, image: bytes, context: AnalysisContext) -> Result[AnalysisResult]:
        checked = self.check_image(image)
        if not checked.ok:
            return checked

        data_url = f"data:{checked.value};base64,{base64.b64encode(image).decode('ascii')}"
        reply = await self._complete(VISION_SYSTEM_PROMPT, build_analysis_prompt(context), data_url)
        if not reply.ok:
            return reply

        try:
            analysis = coerce_analysis(parse_json_object(reply.value))
        except (ValueError, TypeError) as exc:
            logger.warning("Unparseable vision response: %s", exc)
            return Result.failure(ErrorKind.MALFORMED_RESPONSE, f"Could not parse analysis: {exc}")

        result = AnalysisResult(
            analysis_id=generate_unique_id("analysis"),
            session_id=context.session_id,
            image_digest=hashlib.sha256(image).hexdigest(),
            analysis=analysis,
            quality_score=quality_score(analysis),
            source=context.source,
            device_type=context.device_type,
            timestamp=self.clock(),
        )
        logger.info(
            "Window analyzed: %s/%s quality %d", analysis.window_type,
            analysis.material, result.quality_score,
        )
        return Result.success(result)

    async def check_measurements(
        self,
        width: float,
        height: float,
        window_type: str,
        confidence: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> MeasurementCheck:
        """Local plausibility check merged with the model's verdict when reachable."""
        local = check_measurement_plausibility(width, height, confidence)
        reply = await self._complete(
            MEASUREMENT_SYSTEM_PROMPT, build_measurement_prompt(width, height, window_type, notes)
        )
        if not reply.ok:
            return local.model_copy(update={"degraded": True})
        try:
            verdict = parse_json_object(reply.value)
        except ValueError as exc:
            logger.warning("Unparseable measurement verdict: %s", exc)
            return local.model_copy(update={"degraded": True})

        model_confidence = _optional_number(verdict.get("confidence"))
        merged_confidence = min(local.confidence, model_confidence or local.confidence)
        issues = local.issues + [
            issue for issue in _text_list(verdict.get("issues")) if issue not in local.issues
        ]
        return _finish_check(
            width,
            height,
            local.is_valid and _flag(verdict.get("isValid")),
            merged_confidence,
            issues,
            _text_list(verdict.get("recommendations")),
        )

    async def explain_quote(
        self, quote: Quote, customer_profile: Optional[dict[str, Any]] = None
    ) -> Result[str]:
        reply = await self._complete(
            EXPLANATION_SYSTEM_PROMPT,
            build_explanation_prompt(quote, customer_profile),
            json_mode=False,
        )
        if not reply.ok:
            return reply
        text = reply.value.strip()
        if not text:
            return Result.failure(ErrorKind.MALFORMED_RESPONSE, "Empty explanation")
        return Result.success(text)

    def health(self) -> dict[str, Any]:
        configured = bool(getattr(self.client, "configured", False))
        return {
            "status": "healthy" if configured else "degraded",
            "configured": configured,
            "model": self.config.model,
        }
