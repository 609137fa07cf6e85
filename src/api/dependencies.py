"""Service wiring shared by the HTTP app and the tests."""

import logging
from dataclasses import dataclass
from typing import Optional

from src.catalog.reference_catalog import ReferenceCatalog
from src.config import AppConfig, settings
from src.gateway.iframe_gateway import IframeGateway
from src.integrations.analytics import AnalyticsSink
from src.integrations.email import EmailDispatcher, EmailTransport, ResendTransport
from src.integrations.secrets import EnvSecretProvider, SecretProvider
from src.integrations.vision import OpenAIVisionClient, VisionAdapter, VisionClient
from src.orchestrator.quote_orchestrator import QuoteOrchestrator
from src.pricing.engine import PricingEngine
from src.storage.document_store import DocumentStore, InMemoryDocumentStore
from src.storage.persistence import PersistenceAdapter

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Every long-lived component, built once per process."""

    config: AppConfig
    store: DocumentStore
    persistence: PersistenceAdapter
    catalog: ReferenceCatalog
    engine: PricingEngine
    vision: VisionAdapter
    email: EmailDispatcher
    analytics: AnalyticsSink
    orchestrator: QuoteOrchestrator
    gateway: IframeGateway


def build_services(
    store: Optional[DocumentStore] = None,
    secrets: Optional[SecretProvider] = None,
    vision_client: Optional[VisionClient] = None,
    email_transport: Optional[EmailTransport] = None,
    config: AppConfig = settings,
) -> ServiceContainer:
    """Wire the component graph. Any collaborator may be swapped for a double."""
    secrets = secrets or EnvSecretProvider()
    store = store if store is not None else InMemoryDocumentStore()
    if vision_client is None:
        vision_client = OpenAIVisionClient(
            secrets.get(config.secrets.vision_api_key), config.vision, config.timeouts.vision_sec
        )
    if email_transport is None:
        email_transport = ResendTransport(
            secrets.get(config.secrets.email_api_key), config.business.sender_address
        )

    persistence = PersistenceAdapter(store, config.timeouts.store_sec)
    catalog = ReferenceCatalog(persistence, config.cache)
    engine = PricingEngine(catalog)
    vision = VisionAdapter(vision_client, config.vision, config.timeouts)
    email = EmailDispatcher(email_transport, config.business, config.timeouts)
    analytics = AnalyticsSink(persistence)
    orchestrator = QuoteOrchestrator(
        catalog, engine, persistence, vision, email, analytics,
        leads=config.leads, business=config.business,
    )
    gateway = IframeGateway(orchestrator, analytics, config.gateway)

    if not getattr(vision_client, "configured", False):
        logger.warning("Vision API key not set; image analysis will run degraded")
    if not getattr(email_transport, "configured", False):
        logger.warning("Email API key not set; quote emails will not be sent")

    return ServiceContainer(
        config=config,
        store=store,
        persistence=persistence,
        catalog=catalog,
        engine=engine,
        vision=vision,
        email=email,
        analytics=analytics,
        orchestrator=orchestrator,
        gateway=gateway,
    )
