"""Shared test fixtures and helpers."""

import base64
import json
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from src.api.dependencies import ServiceContainer, build_services
from src.catalog.reference_catalog import ReferenceCatalog
from src.config import CacheConfig
from src.errors import UpstreamError
from src.integrations.email import EmailMessage
from src.integrations.secrets import StaticSecretProvider
from src.pricing.engine import PricingEngine
from src.schemas.window_schema import WindowSpec
from src.storage.document_store import InMemoryDocumentStore
from src.storage.persistence import PersistenceAdapter

FIXED_NOW = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 32
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 32

ALLOWED_ORIGIN = "https://goodfaithexteriors.com"

ANALYSIS_REPLY = json.dumps({
    "windowType": "Double Hung",
    "material": "vinyl",
    "condition": "fair",
    "estimatedWidth": 36,
    "estimatedHeight": 48,
    "confidence": 82,
    "recommendations": ["Replace the weatherstripping"],
})


class FakeVisionClient:
    """Scripted stand-in for the vision LLM transport."""

    def __init__(
        self,
        replies: Optional[list[str]] = None,
        error: Optional[UpstreamError] = None,
        configured: bool = True,
    ):
        self.replies = list(replies or [])
        self.error = error
        self.configured = configured
        self.calls: list[dict[str, Any]] = []

    async def complete(
        self,
        system_prompt: str,
        user_text: str,
        image_data_url: Optional[str] = None,
        json_mode: bool = True,
    ) -> str:
        self.calls.append({
            "system_prompt": system_prompt,
            "user_text": user_text,
            "image_data_url": image_data_url,
            "json_mode": json_mode,
        })
        if self.error is not None:
            raise self.error
        if not self.replies:
            return "{}"
        return self.replies.pop(0)


class FakeEmailTransport:
    """Records messages instead of sending them."""

    def __init__(self, error: Optional[Exception] = None, configured: bool = True):
        self.error = error
        self.configured = configured
        self.sent: list[EmailMessage] = []

    async def send(self, message: EmailMessage) -> str:
        if self.error is not None:
            raise self.error
        self.sent.append(message)
        return f"email_{len(self.sent)}"


class FakeClock:
    """Monotonic clock the tests advance by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def store():
    return InMemoryDocumentStore()


@pytest.fixture
def persistence(store):
    return PersistenceAdapter(store, timeout_sec=1.0)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def catalog(persistence, fake_clock):
    return ReferenceCatalog(persistence, CacheConfig(), clock=fake_clock)


@pytest.fixture
def engine(catalog):
    return PricingEngine(catalog)


@pytest.fixture
def vision_client():
    return FakeVisionClient(replies=[ANALYSIS_REPLY])


@pytest.fixture
def email_transport():
    return FakeEmailTransport()


@pytest.fixture
def services(store, vision_client, email_transport) -> ServiceContainer:
    container = build_services(
        store=store,
        secrets=StaticSecretProvider(),
        vision_client=vision_client,
        email_transport=email_transport,
    )
    container.orchestrator.clock = lambda: FIXED_NOW
    return container


@pytest.fixture
def orchestrator(services):
    return services.orchestrator


@pytest.fixture
def gateway(services):
    return services.gateway


def make_window(
    width: float = 36,
    height: float = 48,
    quantity: int = 1,
    window_type: str = "double-hung",
    material: str = "vinyl",
    brand: str = "standard",
    options: tuple = (),
) -> WindowSpec:
    """Helper to create a WindowSpec."""
    return WindowSpec(
        width=width,
        height=height,
        quantity=quantity,
        window_type=window_type,
        material=material,
        brand=brand,
        options=options,
    )


def make_window_payload(**overrides: Any) -> dict[str, Any]:
    """Helper to create a widget window payload (camelCase keys)."""
    payload = {
        "width": 36,
        "height": 48,
        "quantity": 1,
        "windowType": "double-hung",
        "material": "vinyl",
        "brand": "standard",
    }
    payload.update(overrides)
    return payload


def make_customer(**overrides: Any) -> dict[str, Any]:
    """Helper to create a widget customer payload."""
    customer = {
        "customerName": "Jordan Rivera",
        "customerEmail": "Jordan.Rivera@Example.com",
        "customerPhone": "(651) 555-0199",
        "projectAddress": "12 Lake St, Saint Paul, MN",
    }
    customer.update(overrides)
    return customer


def image_payload(data: bytes = PNG_BYTES, data_url: bool = True) -> str:
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:image/png;base64,{encoded}" if data_url else encoded


def records(store: InMemoryDocumentStore, collection: str) -> list[dict]:
    """Raw stored rows of one collection."""
    return list(store._collections.get(collection, {}).values())
