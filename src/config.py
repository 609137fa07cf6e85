"""
Centralized configuration with environment variable overrides.

Company details, timeouts, cache lifetimes, origin allow-lists and lead
thresholds are configurable here. Pricing tables live in the reference
catalog; only their fallbacks are defined in code.
"""

import logging
import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from src.logging_context import install_session_filter

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(name)s] [%(session_id)s] %(levelname)s: %(message)s"


def _safe_int(env_var: str, default: str) -> int:
    """Parse an integer from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return int(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid integer for {env_var}: {raw!r}"
        ) from None


def _safe_float(env_var: str, default: str) -> float:
    """Parse a float from an env var with a clear error on bad values."""
    raw = os.getenv(env_var, default)
    try:
        return float(raw)
    except (ValueError, TypeError):
        raise ValueError(
            f"Invalid float for {env_var}: {raw!r}"
        ) from None


def _csv_tuple(env_var: str, default: str) -> tuple[str, ...]:
    """Split a comma-separated env var into a tuple of trimmed, non-empty items."""
    raw = os.getenv(env_var, default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class BusinessConfig:
    """Company details used in emails, prompts and initial widget data."""

    name: str = os.getenv("BUSINESS_NAME", "Good Faith Exteriors")
    phone: str = os.getenv("BUSINESS_PHONE", "(651) 555-0142")
    email: str = os.getenv("BUSINESS_EMAIL", "info@goodfaithexteriors.com")
    website: str = os.getenv("BUSINESS_WEBSITE", "https://goodfaithexteriors.com")
    sender_address: str = os.getenv(
        "EMAIL_FROM_ADDRESS", "Good Faith Exteriors <quotes@goodfaithexteriors.com>"
    )
    quote_valid_days: int = _safe_int("QUOTE_VALID_DAYS", "30")


@dataclass(frozen=True)
class TimeoutConfig:
    """Per-call timeouts for external collaborators, in seconds."""

    store_sec: float = _safe_float("STORE_TIMEOUT", "30")
    vision_sec: float = _safe_float("VISION_TIMEOUT", "60")
    email_sec: float = _safe_float("EMAIL_TIMEOUT", "15")


@dataclass(frozen=True)
class VisionConfig:
    """Vision LLM model settings."""

    model: str = os.getenv("VISION_MODEL", "gpt-4o-mini")
    temperature: float = _safe_float("VISION_TEMPERATURE", "0.2")
    max_tokens: int = _safe_int("VISION_MAX_TOKENS", "1500")
    max_image_bytes: int = _safe_int("VISION_MAX_IMAGE_BYTES", str(5 * 1024 * 1024))


@dataclass(frozen=True)
class CacheConfig:
    """Reference catalog cache lifetimes, in seconds."""

    materials_ttl_sec: int = _safe_int("CACHE_MATERIALS_TTL", "7200")
    products_ttl_sec: int = _safe_int("CACHE_PRODUCTS_TTL", "3600")
    pricing_ttl_sec: int = _safe_int("CACHE_PRICING_TTL", "1800")


@dataclass(frozen=True)
class GatewayConfig:
    """Cross-origin allow-list and accepted iframe source tags."""

    allowed_origins: tuple[str, ...] = _csv_tuple(
        "ALLOWED_ORIGINS",
        "https://goodfaithexteriors.com,https://www.goodfaithexteriors.com,"
        "https://goodfaithexteriors.wixsite.com,http://localhost:3000,http://localhost:8080",
    )
    wildcard_suffixes: tuple[str, ...] = _csv_tuple(
        "ALLOWED_ORIGIN_SUFFIXES", ".wixsite.com,.wix.com,.editorx.io"
    )
    allowed_sources: tuple[str, ...] = _csv_tuple(
        "ALLOWED_SOURCES",
        "gfe-window-products,gfe-ai-estimator,velo-page,website,mobile,popup,widget",
    )


@dataclass(frozen=True)
class LeadConfig:
    """Quote-total thresholds for lead priority."""

    high_threshold: float = _safe_float("LEAD_HIGH_THRESHOLD", "5000")
    medium_threshold: float = _safe_float("LEAD_MEDIUM_THRESHOLD", "2000")


@dataclass(frozen=True)
class SecretNames:
    """Names under which the secret provider exposes credentials."""

    vision_api_key: str = os.getenv("VISION_API_KEY_SECRET", "OPENAI_API_KEY")
    email_api_key: str = os.getenv("EMAIL_API_KEY_SECRET", "RESEND_API_KEY")


@dataclass(frozen=True)
class AppConfig:
    """Root configuration aggregating all sub-configs."""

    business: BusinessConfig = field(default_factory=BusinessConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    vision: VisionConfig = field(default_factory=VisionConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    gateway: GatewayConfig = field(default_factory=GatewayConfig)
    leads: LeadConfig = field(default_factory=LeadConfig)
    secrets: SecretNames = field(default_factory=SecretNames)
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    service_name: str = os.getenv("SERVICE_NAME", "window-quote-service")
    host: str = os.getenv("HOST", "127.0.0.1")
    port: int = _safe_int("PORT", "8000")


def _validate_config(config: AppConfig) -> None:
    """Validate configuration values are within acceptable ranges."""
    if not 0.0 <= config.vision.temperature <= 2.0:
        raise ValueError(
            f"VISION_TEMPERATURE must be between 0.0 and 2.0, got {config.vision.temperature}"
        )
    if config.vision.max_image_bytes < 1:
        raise ValueError(
            f"VISION_MAX_IMAGE_BYTES must be >= 1, got {config.vision.max_image_bytes}"
        )
    if config.business.quote_valid_days < 1:
        raise ValueError(
            f"QUOTE_VALID_DAYS must be >= 1, got {config.business.quote_valid_days}"
        )

    for timeout_name, timeout_value in [
        ("STORE_TIMEOUT", config.timeouts.store_sec),
        ("VISION_TIMEOUT", config.timeouts.vision_sec),
        ("EMAIL_TIMEOUT", config.timeouts.email_sec),
    ]:
        if timeout_value <= 0:
            raise ValueError(f"{timeout_name} must be > 0, got {timeout_value}")

    for ttl_name, ttl_value in [
        ("CACHE_MATERIALS_TTL", config.cache.materials_ttl_sec),
        ("CACHE_PRODUCTS_TTL", config.cache.products_ttl_sec),
        ("CACHE_PRICING_TTL", config.cache.pricing_ttl_sec),
    ]:
        if ttl_value < 0:
            raise ValueError(f"{ttl_name} must be >= 0, got {ttl_value}")

    if config.leads.medium_threshold > config.leads.high_threshold:
        raise ValueError(
            "LEAD_MEDIUM_THRESHOLD must not exceed LEAD_HIGH_THRESHOLD, "
            f"got {config.leads.medium_threshold} > {config.leads.high_threshold}"
        )

    if not 1 <= config.port <= 65535:
        raise ValueError(f"PORT must be between 1 and 65535, got {config.port}")

    for origin in config.gateway.allowed_origins:
        if not origin.startswith(("http://", "https://")):
            raise ValueError(f"ALLOWED_ORIGINS entries must include a scheme, got {origin!r}")


def load_config() -> AppConfig:
    """Load and validate application configuration."""
    config = AppConfig()
    _validate_config(config)
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    install_session_filter()
    logger.info("Configuration loaded for '%s'", config.business.name)
    return config


# Singleton instance
settings = load_config()
