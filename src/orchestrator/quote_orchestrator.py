"""
Session-scoped quote pipelines.

The orchestrator holds no per-request state: every call receives a
``RequestContext`` and the widget payload, and returns a ``Result`` whose
value is wire-ready data. Within one pipeline writes are strictly
ordered (customer, then quote lines, then email). Store, vision and
email failures degrade the response; they never fail a priced quote.

Pipelines:
    A. analyze_window: image -> vision -> analysis record -> analytics -> optional email
    B. calculate_quote: windows -> validation -> pricing -> customer -> quote lines
       -> optional email -> analytics
    C. explain_quote: priced quote -> vision (text mode) -> patch quote records
"""

import asyncio
from datetime import datetime
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from src.catalog.reference_catalog import ReferenceCatalog
from src.config import BusinessConfig, LeadConfig, settings
from src.errors import ErrorKind, Result
from src.integrations.analytics import AnalyticsEvent, AnalyticsSink
from src.integrations.email import EmailDispatcher, EmailTemplate
from src.integrations.vision import (
    VisionAdapter,
    check_measurement_plausibility,
    decode_image_data,
)
from src.logging_context import get_session_logger, set_session_id
from src.orchestrator.lead_scoring import (
    customer_completeness,
    derive_lead_priority,
    detect_device_type,
    follow_up_date,
    generate_tags,
    merge_tags,
)
from src.pricing.engine import PricingEngine
from src.schemas.analysis_schema import AnalysisContext
from src.schemas.customer_schema import CustomerInfo, LeadProfile, LeadStatus
from src.schemas.message_schema import IframeAction, RequestContext
from src.schemas.pricing_schema import Quote
from src.schemas.window_schema import WindowSpec
from src.storage.persistence import PersistenceAdapter
from src.utils import generate_session_id, generate_unique_id, iso_timestamp, utc_now
from src.validation.validators import (
    validate_ai_measurement,
    validate_customer,
    validate_quote_submission,
    validate_window_spec,
)

logger = get_session_logger(__name__)


def _validation_error(message: str, details: Optional[list[str]] = None) -> Result[Any]:
    return Result.failure(ErrorKind.VALIDATION, message, details)


def _customer_payload(data: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    """Customer fields may arrive nested under ``customer`` or at the top level."""
    nested = data.get("customer") or data.get("customerInfo")
    if isinstance(nested, Mapping):
        return nested
    if data.get("customerEmail") or data.get("email"):
        return data
    return None


def _parse_quote(data: Mapping[str, Any]) -> Result[Quote]:
    raw = data.get("quote") or data.get("quoteData")
    if isinstance(raw, Quote):
        return Result.success(raw)
    if not isinstance(raw, Mapping):
        return _validation_error("quoteData is required")
    try:
        return Result.success(Quote.model_validate(raw))
    except ValidationError as exc:
        details = [f"{'.'.join(map(str, e['loc']))}: {e['msg']}" for e in exc.errors()]
        return _validation_error("quoteData is not a valid quote", details)


def _quote_email_payload(quote: Quote, explanation: Optional[str] = None) -> dict[str, Any]:
    return {
        "lines": [
            {
                "quantity": line.spec.quantity,
                "width": f"{line.spec.width:g}",
                "height": f"{line.spec.height:g}",
                "window_type": line.spec.window_type.value,
                "material": line.spec.material.value,
                "brand": line.spec.brand,
                "total_price": line.total_price,
            }
            for line in quote.lines
        ],
        "total_quantity": quote.total_quantity,
        "total_labor": quote.total_labor,
        "total_tax": quote.total_tax,
        "final_total": quote.final_total,
        "minimum_applied": quote.minimum_applied,
        "minimum_order_value": quote.minimum_order_value,
        "explanation": explanation,
    }


class QuoteOrchestrator:
    """Binds one customer session across analysis, pricing, persistence and email."""

    def __init__(
        self,
        catalog: ReferenceCatalog,
        engine: PricingEngine,
        persistence: PersistenceAdapter,
        vision: VisionAdapter,
        email: EmailDispatcher,
        analytics: AnalyticsSink,
        leads: LeadConfig = settings.leads,
        business: BusinessConfig = settings.business,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.engine = engine
        self.persistence = persistence
        self.vision = vision
        self.email = email
        self.analytics = analytics
        self.leads = leads
        self.business = business
        self.clock = clock

    def begin(
        self,
        session_id: Optional[str] = None,
        source: Optional[str] = None,
        mode: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> RequestContext:
        """Create the request context, generating a session id when absent."""
        context = RequestContext(
            session_id=session_id or generate_session_id(),
            source=source or "website",
            mode=mode or "standard",
            device_type=detect_device_type(source, user_agent),
            user_agent=user_agent,
        )
        set_session_id(context.session_id)
        return context

    # -- pipeline A ---------------------------------------------------------

    async def analyze_window(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        image_data = data.get("imageData") or data.get("image")
        if not isinstance(image_data, str) or not image_data.strip():
            return _validation_error("imageData is required")
        try:
            image = decode_image_data(image_data)
        except ValueError as exc:
            return _validation_error(str(exc))

        analysis_context = AnalysisContext(
            session_id=context.session_id,
            source=context.source,
            device_type=context.device_type,
            notes=data.get("notes"),
        )
        outcome = await self.vision.analyze_image(image, analysis_context)
        if not outcome.ok and outcome.error.kind == ErrorKind.INVALID_IMAGE:
            return _validation_error(outcome.error.message)
        if not outcome.ok:
            event = (
                AnalyticsEvent.VISION_TIMEOUT
                if outcome.error.kind == ErrorKind.UPSTREAM_TIMEOUT
                else AnalyticsEvent.VISION_FAILED
            )
            logger.warning("Analysis degraded: %s", outcome.error.message)
            await self.analytics.record(
                event, context, {"reason": outcome.error.kind.value, "message": outcome.error.message}
            )
            return Result.success({
                "sessionId": context.session_id,
                "analysis": None,
                "qualityScore": None,
                "degraded": True,
                "reason": outcome.error.kind.value,
                "message": outcome.error.message,
            })

        result = outcome.value
        saved = await self.persistence.save_analysis(result)
        if not saved.ok:
            logger.warning("Analysis %s not persisted: %s", result.analysis_id, saved.error.message)

        measurement_check = None
        if result.analysis.estimated_width and result.analysis.estimated_height:
            measurement_check = check_measurement_plausibility(
                result.analysis.estimated_width,
                result.analysis.estimated_height,
                result.analysis.confidence,
            ).to_wire()

        await self.analytics.record(
            AnalyticsEvent.AI_ANALYSIS_COMPLETED,
            context,
            {"analysisId": result.analysis_id, "qualityScore": result.quality_score},
        )

        email_sent = False
        customer_email = data.get("customerEmail")
        if customer_email and data.get("sendEmail"):
            sent = await self.email.send(
                EmailTemplate.AI_ANALYSIS,
                customer_email,
                data.get("customerName") or "",
                result.analysis.model_dump(),
            )
            email_sent = sent.ok
            if not sent.ok:
                logger.warning("Analysis summary email not sent: %s", sent.error.message)

        return Result.success({
            "sessionId": context.session_id,
            "analysisId": result.analysis_id,
            "analysis": result.analysis.to_wire(),
            "qualityScore": result.quality_score,
            "measurementCheck": measurement_check,
            "recordId": saved.value["_id"] if saved.ok else None,
            "degraded": False,
            "emailSent": email_sent,
        })

    async def validate_measurements(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        measurements = data.get("measurements")
        window_type = data.get("windowType")
        if not isinstance(measurements, Mapping) or not window_type:
            return _validation_error("measurements and windowType are required")

        checked = validate_ai_measurement({
            "sessionName": data.get("sessionName") or context.session_id,
            "measuredWidth": measurements.get("width"),
            "measuredHeight": measurements.get("height"),
            "confidence": measurements.get("confidence", data.get("confidence")),
        })
        if not checked.is_valid:
            return checked.to_result("Measurements")

        values = checked.sanitized
        verdict = await self.vision.check_measurements(
            values["measuredWidth"],
            values["measuredHeight"],
            str(window_type),
            values.get("confidence"),
            data.get("notes"),
        )
        await self.analytics.record(
            AnalyticsEvent.MEASUREMENTS_VALIDATED,
            context,
            {"isValid": verdict.is_valid, "qualityScore": verdict.quality_score},
        )
        return Result.success({
            "sessionId": context.session_id,
            "measurements": {"width": values["measuredWidth"], "height": values["measuredHeight"]},
            "windowType": str(window_type),
            "validation": verdict.to_wire(),
        })

    # -- pipeline B ---------------------------------------------------------

    def _lead_profile(
        self,
        context: RequestContext,
        total: float,
        specs: list[WindowSpec],
        has_ai_analysis: bool,
        engaged: bool,
        customer: Optional[Mapping[str, Any]] = None,
    ) -> LeadProfile:
        priority = derive_lead_priority(total, context.mode, has_ai_analysis, self.leads)
        return LeadProfile(
            priority=priority,
            follow_up_date=follow_up_date(priority, engaged, self.clock()),
            tags=generate_tags(context, total, specs, has_ai_analysis, self.leads),
            completeness=customer_completeness(customer or {}),
        )

    async def _upsert_customer(
        self,
        info: CustomerInfo,
        profile: LeadProfile,
        context: RequestContext,
        estimated_value: Optional[float],
        status: Optional[LeadStatus] = None,
    ) -> Result[dict]:
        existing = await self.persistence.find_customer_by_email(info.email)
        existing_tags = existing.value.get("tags") if existing.ok and existing.value else None
        fields: dict[str, Any] = {
            "customerId": generate_unique_id("cust"),
            "customerName": info.name,
            "customerEmail": info.email,
            "customerPhone": info.phone,
            "projectAddress": info.address,
            "projectNotes": info.notes,
            "leadPriority": profile.priority,
            "followUpDate": iso_timestamp(profile.follow_up_date),
            "tags": merge_tags(existing_tags, profile.tags),
            "completeness": profile.completeness,
            "estimatedValue": estimated_value,
            "source": context.source,
            "deviceType": context.device_type,
            "sessionId": context.session_id,
            "leadStatus": status,
        }
        return await self.persistence.upsert_customer(fields, now=self.clock())

    async def calculate_quote(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        windows = data.get("windows")
        if not isinstance(windows, list) or not windows:
            return _validation_error("windows is required")

        specs: list[WindowSpec] = []
        errors: list[str] = []
        for index, window in enumerate(windows):
            checked = validate_window_spec(window)
            if checked.is_valid:
                specs.append(checked.sanitized)
            else:
                errors.extend(f"Window {index + 1}: {error}" for error in checked.errors)
        if errors:
            return _validation_error("Window specifications failed validation", errors)

        overrides = data.get("pricingConfig")
        overrides = dict(overrides) if isinstance(overrides, Mapping) else None
        priced = await self.engine.calculate_quote(specs, overrides=overrides)
        if not priced.ok:
            return priced
        quote = priced.value
        breakdowns = await asyncio.gather(
            *(self.engine.breakdown(spec, overrides=overrides) for spec in specs)
        )

        has_ai_analysis = bool(data.get("analysisId") or data.get("hasAiAnalysis"))
        engaged = has_ai_analysis or bool(data.get("engaged"))
        response: dict[str, Any] = {
            "sessionId": context.session_id,
            "quote": quote.to_wire(),
            "breakdowns": [item.value.to_wire() for item in breakdowns if item.ok],
            "customer": None,
            "quoteRecordIds": [],
            "email": None,
        }

        customer_data = _customer_payload(data)
        customer_info: Optional[CustomerInfo] = None
        if customer_data is not None:
            checked_customer = validate_customer(customer_data)
            if checked_customer.is_valid:
                customer_info = checked_customer.sanitized
            else:
                logger.warning("Customer details ignored: %s", "; ".join(checked_customer.errors))
                response["customer"] = {"saved": False, "errors": checked_customer.errors}

        profile = self._lead_profile(
            context, quote.final_total, specs, has_ai_analysis, engaged,
            customer_info.model_dump() if customer_info else None,
        )
        response["lead"] = profile.to_wire()

        if customer_info is not None:
            await self._persist_quote(quote, customer_info, profile, context, response)
            if data.get("sendEmail") is not False:
                sent = await self.email.send(
                    EmailTemplate.QUOTE,
                    customer_info.email,
                    customer_info.name,
                    _quote_email_payload(quote),
                    headers={"X-Quote-ID": quote.quote_id},
                )
                response["email"] = (
                    {"sent": True, **sent.value} if sent.ok
                    else {"sent": False, "error": sent.error.message}
                )
                await self.analytics.record(
                    AnalyticsEvent.EMAIL_SENT if sent.ok else AnalyticsEvent.EMAIL_FAILED,
                    context,
                    {"template": EmailTemplate.QUOTE.value, "quoteId": quote.quote_id},
                )

        await self.analytics.record(
            AnalyticsEvent.QUOTE_CALCULATED,
            context,
            {
                "quoteId": quote.quote_id,
                "finalTotal": quote.final_total,
                "windowCount": quote.window_count,
                "leadPriority": profile.priority.value,
            },
        )
        return Result.success(response)

    async def _persist_quote(
        self,
        quote: Quote,
        info: CustomerInfo,
        profile: LeadProfile,
        context: RequestContext,
        response: dict[str, Any],
    ) -> None:
        """Customer first, then one record per line. Failures are logged only."""
        upserted = await self._upsert_customer(
            info, profile, context, quote.final_total, LeadStatus.QUOTED
        )
        if not upserted.ok:
            logger.warning("Customer %s not persisted: %s", info.email, upserted.error.message)
            response["customer"] = {"saved": False, "errors": [upserted.error.message]}
            return
        customer = upserted.value
        response["customer"] = {
            "saved": True,
            "customerId": customer.get("customerId"),
            "recordId": customer.get("_id"),
            "action": customer.get("action"),
        }

        submission = validate_quote_submission(
            {"customerId": customer.get("customerId"), "windowData": [line.spec for line in quote.lines]},
            valid_days=self.business.quote_valid_days,
            now=self.clock(),
        )
        if not submission.is_valid:
            logger.warning("Quote lines not persisted: %s", "; ".join(submission.errors))
            return

        records = [
            {
                "quoteId": quote.quote_id,
                "sessionId": context.session_id,
                "customerId": customer.get("customerId"),
                "lineIndex": line.line_index,
                "windowSpecifications": line.spec,
                "pricingDetails": line.model_dump(by_alias=True, mode="json", exclude={"spec"}),
                "totalAmount": line.total_price,
                "source": context.source,
                "deviceType": context.device_type,
                "leadPriority": profile.priority,
            }
            for line in quote.lines
        ]
        saved = await self.persistence.save_quote_lines(
            records, expires_at=submission.sanitized["validUntil"], now=self.clock()
        )
        if not saved.ok:
            logger.warning("Quote %s lines not persisted: %s", quote.quote_id, saved.error.message)
            return
        response["quoteRecordIds"] = [record["_id"] for record in saved.value]

    # -- pipeline C ---------------------------------------------------------

    async def explain_quote(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        parsed = _parse_quote(data)
        if not parsed.ok:
            return parsed
        quote = parsed.value

        profile = data.get("customerProfile")
        outcome = await self.vision.explain_quote(
            quote, profile if isinstance(profile, Mapping) else None
        )
        if not outcome.ok:
            logger.warning("Explanation degraded: %s", outcome.error.message)
            return Result.success({
                "sessionId": context.session_id,
                "quoteId": quote.quote_id,
                "explanation": None,
                "degraded": True,
                "reason": outcome.error.kind.value,
            })

        record_ids = data.get("quoteRecordIds") or []
        if data.get("quoteRecordId"):
            record_ids = [data["quoteRecordId"], *record_ids]
        patched: list[str] = []
        for record_id in record_ids:
            result = await self.persistence.attach_explanation(
                str(record_id), outcome.value, now=self.clock()
            )
            if result.ok:
                patched.append(str(record_id))
            else:
                logger.warning("Explanation not attached to %s: %s", record_id, result.error.message)

        await self.analytics.record(
            AnalyticsEvent.QUOTE_EXPLAINED, context, {"quoteId": quote.quote_id}
        )
        return Result.success({
            "sessionId": context.session_id,
            "quoteId": quote.quote_id,
            "explanation": outcome.value,
            "updatedRecords": patched,
            "generatedAt": iso_timestamp(self.clock()),
            "degraded": False,
        })

    # -- customers and email ------------------------------------------------

    async def save_customer(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        payload = _customer_payload(data) or data
        checked = validate_customer(payload)
        if not checked.is_valid:
            return checked.to_result("Customer")
        info: CustomerInfo = checked.sanitized

        existing = await self.persistence.find_customer_by_email(info.email)
        previous = existing.value if existing.ok else None
        estimated = data.get("estimatedValue")
        if estimated is None and previous:
            estimated = previous.get("estimatedValue")
        try:
            total = float(estimated or 0)
        except (TypeError, ValueError):
            total = 0.0

        has_ai_analysis = bool(data.get("hasAiAnalysis"))
        profile = self._lead_profile(
            context, total, [], has_ai_analysis,
            has_ai_analysis or bool(data.get("engaged")), info.model_dump(),
        )
        upserted = await self._upsert_customer(
            info, profile, context, float(estimated) if estimated is not None else None
        )
        if not upserted.ok:
            return upserted

        customer = upserted.value
        await self.analytics.record(
            AnalyticsEvent.CUSTOMER_INFO_UPDATED,
            context,
            {"action": customer.get("action"), "completeness": profile.completeness},
        )
        return Result.success({
            "customerId": customer.get("customerId"),
            "recordId": customer.get("_id"),
            "action": customer.get("action"),
            "leadPriority": profile.priority.value,
            "followUpDate": iso_timestamp(profile.follow_up_date),
            "tags": customer.get("tags"),
            "completeness": profile.completeness,
        })

    async def get_customer(self, email: Optional[str]) -> Result[Optional[dict]]:
        """Fetch by email; a missing customer is ``None``, not an error."""
        if not email or not email.strip():
            return _validation_error("email is required")
        return await self.persistence.find_customer_by_email(email)

    async def email_quote(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        parsed = _parse_quote(data)
        if not parsed.ok:
            return parsed
        customer = _customer_payload(data) or {}
        email = customer.get("customerEmail") or customer.get("email")
        if not email:
            return _validation_error("customerEmail is required")
        name = customer.get("customerName") or customer.get("name") or ""

        sent = await self.email.send(
            EmailTemplate.QUOTE,
            str(email),
            str(name),
            _quote_email_payload(parsed.value, data.get("explanation")),
            headers={"X-Quote-ID": parsed.value.quote_id},
        )
        await self.analytics.record(
            AnalyticsEvent.EMAIL_SENT if sent.ok else AnalyticsEvent.EMAIL_FAILED,
            context,
            {"template": EmailTemplate.QUOTE.value, "quoteId": parsed.value.quote_id},
        )
        if not sent.ok:
            return Result.success({"emailSent": False, "error": sent.error.message})
        return Result.success({"emailSent": True, **sent.value})

    # -- widget bookkeeping -------------------------------------------------

    async def record_engagement(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        recorded = await self.analytics.record(AnalyticsEvent.USER_ENGAGEMENT, context, dict(data))
        return Result.success({"processed": True, "recorded": recorded})

    async def record_client_error(
        self, data: Mapping[str, Any], context: RequestContext
    ) -> Result[dict[str, Any]]:
        logger.warning("Widget reported an error: %s", data.get("message") or data.get("error"))
        recorded = await self.analytics.record(AnalyticsEvent.CLIENT_ERROR, context, dict(data))
        return Result.success({"processed": True, "recorded": recorded})

    async def load_initial_data(self) -> Result[dict[str, Any]]:
        products, materials, window_types, brands, options, config = await asyncio.gather(
            self.catalog.list_products(),
            self.catalog.list_materials(),
            self.catalog.list_window_types(),
            self.catalog.list_brands(),
            self.catalog.list_options(),
            self.catalog.get_pricing_config(),
        )
        return Result.success({
            "products": products,
            "materials": materials,
            "windowTypes": window_types,
            "brands": brands,
            "options": options,
            "configuration": config.to_wire(),
            "iframeActions": [action.value for action in IframeAction],
            "iframeSources": list(settings.gateway.allowed_sources),
            "companyInfo": {
                "name": self.business.name,
                "phone": self.business.phone,
                "email": self.business.email,
                "website": self.business.website,
            },
        })

    async def system_health(self) -> dict[str, Any]:
        database = await self.persistence.check_database_health()
        components = {
            "catalog": self.catalog.health(),
            "database": database,
            "vision": self.vision.health(),
            "email": self.email.health(),
        }
        if database["status"] == "unhealthy":
            overall = "unhealthy"
        elif any(c["status"] != "healthy" for c in components.values()):
            overall = "degraded"
        else:
            overall = "healthy"
        return {"status": overall, "components": components}
