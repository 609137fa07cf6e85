"""
FastAPI application exposing the quote endpoints.

Every route returns the shared JSON envelope built by the gateway module.
Status codes: 200 on success (including degraded results), 400 on
validation and origin failures, 500 on pricing and internal errors.
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.api.dependencies import ServiceContainer, build_services
from src.errors import ErrorKind, Result, ServiceError
from src.gateway.iframe_gateway import GatewayResponse, envelope_for, error_envelope
from src.schemas.message_schema import RequestContext, SuccessMessage

logger = logging.getLogger(__name__)


def _json(response: GatewayResponse) -> JSONResponse:
    return JSONResponse(status_code=response.status_code, content=response.body)


def _endpoint(request: Request) -> str:
    return request.url.path.strip("/") or "root"


def _context(services: ServiceContainer, request: Request, payload: dict[str, Any]) -> RequestContext:
    return services.orchestrator.begin(
        payload.get("sessionId"),
        payload.get("source"),
        payload.get("mode"),
        request.headers.get("user-agent"),
    )


def _origin_regex(suffixes: tuple[str, ...]) -> Optional[str]:
    if not suffixes:
        return None
    alternatives = "|".join(re.escape(suffix) for suffix in suffixes)
    return rf"https://[^/]+({alternatives})"


def create_app(services: Optional[ServiceContainer] = None) -> FastAPI:
    """Build the app around a service container (a fresh one when omitted)."""
    services = services or build_services()
    config = services.config

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("%s starting", config.service_name)
        yield
        logger.info("%s stopping", config.service_name)

    app = FastAPI(title="Window Quote Service", version="1.0.0", lifespan=lifespan)
    app.state.services = services

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.gateway.allowed_origins),
        allow_origin_regex=_origin_regex(config.gateway.wildcard_suffixes),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def on_request_validation(request: Request, exc: RequestValidationError):
        details = [
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        ]
        error = ServiceError(ErrorKind.VALIDATION, "Request body is invalid", details)
        return _json(error_envelope(_endpoint(request), error))

    @app.exception_handler(Exception)
    async def on_unhandled(request: Request, exc: Exception):
        endpoint = _endpoint(request)
        logger.exception("Unhandled error on %s", endpoint)
        await services.analytics.record_error(endpoint, exc)
        return _json(error_envelope(endpoint, ServiceError(ErrorKind.INTERNAL, str(exc))))

    # -- pipelines ------------------------------------------------------------

    @app.post("/analyze-window")
    async def analyze_window(request: Request, payload: dict[str, Any] = Body(...)):
        context = _context(services, request, payload)
        result = await services.orchestrator.analyze_window(payload, context)
        return _json(envelope_for(_endpoint(request), result, SuccessMessage.ANALYSIS_COMPLETE.value))

    @app.post("/validate-measurements")
    async def validate_measurements(request: Request, payload: dict[str, Any] = Body(...)):
        context = _context(services, request, payload)
        result = await services.orchestrator.validate_measurements(payload, context)
        return _json(envelope_for(_endpoint(request), result, SuccessMessage.MEASUREMENTS_CHECKED.value))

    @app.post("/generate-quote-explanation")
    async def generate_quote_explanation(request: Request, payload: dict[str, Any] = Body(...)):
        context = _context(services, request, payload)
        result = await services.orchestrator.explain_quote(payload, context)
        return _json(envelope_for(_endpoint(request), result, SuccessMessage.EXPLANATION_READY.value))

    @app.post("/calculate-quote")
    async def calculate_quote(request: Request, payload: dict[str, Any] = Body(...)):
        context = _context(services, request, payload)
        result = await services.orchestrator.calculate_quote(payload, context)
        return _json(envelope_for(_endpoint(request), result, SuccessMessage.QUOTE_CREATED.value))

    # -- customers ------------------------------------------------------------

    @app.post("/customer")
    async def save_customer(request: Request, payload: dict[str, Any] = Body(...)):
        context = _context(services, request, payload)
        result = await services.orchestrator.save_customer(payload, context)
        return _json(envelope_for(_endpoint(request), result, SuccessMessage.CUSTOMER_SAVED.value))

    @app.get("/customer")
    async def get_customer(request: Request, email: Optional[str] = None):
        result = await services.orchestrator.get_customer(email)
        return _json(envelope_for(_endpoint(request), result))

    # -- catalog readers ------------------------------------------------------

    @app.get("/materials")
    async def materials(request: Request):
        return _json(envelope_for(_endpoint(request), Result.success(await services.catalog.list_materials())))

    @app.get("/window-types")
    async def window_types(request: Request):
        return _json(envelope_for(_endpoint(request), Result.success(await services.catalog.list_window_types())))

    @app.get("/window-brands")
    async def window_brands(request: Request):
        return _json(envelope_for(_endpoint(request), Result.success(await services.catalog.list_brands())))

    @app.get("/window-options")
    async def window_options(request: Request):
        return _json(envelope_for(_endpoint(request), Result.success(await services.catalog.list_options())))

    @app.get("/window-products")
    async def window_products(request: Request, category: Optional[str] = None):
        listing = await services.catalog.list_products(category)
        return _json(envelope_for(_endpoint(request), Result.success(listing)))

    @app.get("/configuration")
    async def configuration(request: Request):
        pricing = await services.catalog.get_pricing_config()
        return _json(envelope_for(_endpoint(request), Result.success(pricing.to_wire())))

    # -- widget and operations ------------------------------------------------

    @app.post("/iframe-message")
    async def iframe_message(request: Request):
        try:
            body = await request.json()
        except ValueError:
            body = None
        response = await services.gateway.handle_message(
            body,
            origin=request.headers.get("origin"),
            referer=request.headers.get("referer"),
            user_agent=request.headers.get("user-agent"),
        )
        return _json(response)

    @app.get("/system-health")
    async def system_health(request: Request):
        health = await services.orchestrator.system_health()
        return _json(envelope_for(_endpoint(request), Result.success(health)))

    return app
