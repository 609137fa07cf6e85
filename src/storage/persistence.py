"""
Persistence adapter over the document store.

Every write goes through ``sanitize_record``: empty fields are dropped,
nested structures become JSON text, and numbers are made canonical.
Reads parse the known JSON fields back. Every public method returns a
``Result`` so store failures never escape as exceptions.
"""

import asyncio
import json
import logging
import math
import time
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any, Awaitable, Iterable, Mapping, Optional, TypeVar

from pydantic import BaseModel

from src.config import settings
from src.errors import ErrorKind, Result
from src.schemas.analysis_schema import AnalysisResult
from src.schemas.customer_schema import LeadStatus
from src.storage.collections import CRITICAL_COLLECTIONS, SEARCHABLE_COLLECTIONS, Collections
from src.storage.document_store import (
    MAX_QUERY_LIMIT,
    DocumentStore,
    Query,
    QueryResult,
    RecordNotFoundError,
)
from src.utils import iso_timestamp, normalize_email, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

JSON_FIELDS = frozenset({
    "tags",
    "analysisResults",
    "detectedMeasurements",
    "aiRecommendations",
    "windowSpecifications",
    "pricingDetails",
    "details",
})

MAX_SEARCH_LIMIT = 50


def _json_default(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, Decimal):
        return float(value)
    return str(value)


def _sanitize_value(value: Any) -> Any:
    """Return the stored form of one value, or None to drop it."""
    if value is None:
        return None
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        value = float(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return value + 0.0  # folds -0.0 into 0.0
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return iso_timestamp(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, BaseModel):
        value = value.model_dump(by_alias=True, mode="json")
    return json.dumps(value, default=_json_default, sort_keys=True)


def sanitize_record(record: Mapping[str, Any]) -> dict[str, Any]:
    """Prepare a record for the store.

    Examples:
        >>> sanitize_record({"a": None, "b": [1, 2], "c": 3})
        {'b': '[1, 2]', 'c': 3}
    """
    clean: dict[str, Any] = {}
    for key, value in record.items():
        if isinstance(value, float) and not math.isfinite(value):
            logger.warning("Dropping non-finite value for field '%s'", key)
        stored = _sanitize_value(value)
        if stored is not None:
            clean[key] = stored
    return clean


def deserialize_record(record: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
    """Parse JSON-text fields back into structures; bad JSON stays a string."""
    if record is None:
        return None
    parsed = dict(record)
    for key in JSON_FIELDS.intersection(parsed):
        value = parsed[key]
        if isinstance(value, str):
            try:
                parsed[key] = json.loads(value)
            except ValueError:
                pass
    return parsed


class PersistenceAdapter:
    """Collection-scoped CRUD plus the domain writes the pipelines need."""

    def __init__(self, store: DocumentStore, timeout_sec: float = settings.timeouts.store_sec):
        self.store = store
        self.timeout_sec = timeout_sec

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> Result[T]:
        try:
            value = await asyncio.wait_for(awaitable, timeout=self.timeout_sec)
        except asyncio.TimeoutError:
            logger.warning("Store %s timed out after %.1fs", operation, self.timeout_sec)
            return Result.failure(ErrorKind.UPSTREAM_TIMEOUT, f"Store {operation} timed out")
        except RecordNotFoundError as exc:
            return Result.failure(ErrorKind.NOT_FOUND, f"Record not found: {exc.args[0]}")
        except Exception as exc:
            logger.warning("Store %s failed: %s", operation, exc)
            return Result.failure(
                ErrorKind.UPSTREAM_UNAVAILABLE, f"Store {operation} failed: {exc}"
            )
        return Result.success(value)

    # -- primitives ---------------------------------------------------------

    async def insert(self, collection: str, record: Mapping[str, Any]) -> Result[dict]:
        result = await self._call(
            f"insert into {collection}", self.store.insert(collection, sanitize_record(record))
        )
        return Result.success(deserialize_record(result.value)) if result.ok else result

    async def update(
        self, collection: str, record_id: str, patch: Mapping[str, Any]
    ) -> Result[dict]:
        result = await self._call(
            f"update of {collection}",
            self.store.update(collection, record_id, sanitize_record(patch)),
        )
        return Result.success(deserialize_record(result.value)) if result.ok else result

    async def get(self, collection: str, record_id: str) -> Result[Optional[dict]]:
        result = await self._call(f"get from {collection}", self.store.get(collection, record_id))
        return Result.success(deserialize_record(result.value)) if result.ok else result

    async def remove(self, collection: str, record_id: str) -> Result[bool]:
        return await self._call(
            f"remove from {collection}", self.store.remove(collection, record_id)
        )

    async def query(self, collection: str, query: Optional[Query] = None) -> Result[QueryResult]:
        result = await self._call(
            f"query of {collection}", self.store.query(collection, query or Query())
        )
        if not result.ok:
            return result
        return Result.success(QueryResult(
            items=[deserialize_record(item) for item in result.value.items],
            total_count=result.value.total_count,
        ))

    async def bulk_insert(
        self, collection: str, records: Iterable[Mapping[str, Any]]
    ) -> Result[list[dict]]:
        clean = [sanitize_record(record) for record in records]
        result = await self._call(
            f"bulk insert into {collection}", self.store.bulk_insert(collection, clean)
        )
        if not result.ok:
            return result
        return Result.success([deserialize_record(item) for item in result.value])

    # -- search and health --------------------------------------------------

    async def search_all(
        self,
        term: str,
        collections: Optional[Iterable[str]] = None,
        limit_per_collection: int = 10,
    ) -> Result[dict[str, list[dict]]]:
        """Case-insensitive substring search over stored field values."""
        needle = (term or "").strip().lower()
        if not needle:
            return Result.failure(ErrorKind.VALIDATION, "Search term is required")
        limit = max(1, min(limit_per_collection, MAX_SEARCH_LIMIT))

        matches: dict[str, list[dict]] = {}
        for collection in collections or SEARCHABLE_COLLECTIONS:
            result = await self.query(collection, Query().limit(MAX_QUERY_LIMIT))
            if not result.ok:
                logger.warning("Search skipped %s: %s", collection, result.error.message)
                continue
            hits = [
                item for item in result.value.items
                if any(needle in str(value).lower() for value in item.values())
            ]
            matches[collection] = hits[:limit]
        return Result.success(matches)

    async def check_database_health(self) -> dict[str, Any]:
        started = time.perf_counter()
        collections: dict[str, dict[str, Any]] = {}
        for collection in CRITICAL_COLLECTIONS:
            result = await self.query(collection, Query().limit(1))
            if result.ok:
                collections[collection] = {
                    "status": "healthy",
                    "recordCount": result.value.total_count,
                }
            else:
                collections[collection] = {"status": "unhealthy", "error": result.error.message}

        healthy = sum(1 for c in collections.values() if c["status"] == "healthy")
        if healthy == len(collections):
            overall = "healthy"
        elif healthy == 0:
            overall = "unhealthy"
        else:
            overall = "degraded"
        return {
            "status": overall,
            "collections": collections,
            "responseTimeMs": round((time.perf_counter() - started) * 1000, 1),
        }

    async def collection_statistics(
        self, collections: Optional[Iterable[str]] = None
    ) -> dict[str, Any]:
        stats: dict[str, Any] = {}
        for collection in collections or CRITICAL_COLLECTIONS:
            result = await self.query(collection, Query().limit(1))
            stats[collection] = (
                {"count": result.value.total_count} if result.ok
                else {"count": None, "error": result.error.message}
            )
        return stats

    # -- customers ----------------------------------------------------------

    async def find_customer_by_email(self, email: str) -> Result[Optional[dict]]:
        result = await self.query(
            Collections.CUSTOMERS,
            Query().eq("customerEmail", normalize_email(email)).limit(1),
        )
        if not result.ok:
            return result
        return Result.success(result.value.items[0] if result.value.items else None)

    async def upsert_customer(
        self, fields: Mapping[str, Any], now: Optional[datetime] = None
    ) -> Result[dict]:
        """Create or update the customer keyed by ``customerEmail``.

        The stored record keeps its ``_id``, ``customerId`` and
        ``dateCreated`` across updates; ``lastUpdated`` is always bumped.
        The returned record carries ``action`` = created | updated.
        """
        now = now or utc_now()
        email = normalize_email(str(fields.get("customerEmail", "")))
        if not email:
            return Result.failure(ErrorKind.VALIDATION, "customerEmail is required")

        existing = await self.find_customer_by_email(email)
        if not existing.ok:
            return existing

        record = {**fields, "customerEmail": email, "lastUpdated": now}
        if existing.value is not None:
            current = existing.value
            for preserved in ("customerId", "dateCreated"):
                record.pop(preserved, None)
            result = await self.update(Collections.CUSTOMERS, current["_id"], record)
            action = "updated"
        else:
            record.setdefault("leadStatus", LeadStatus.NEW)
            record["dateCreated"] = now
            result = await self.insert(Collections.CUSTOMERS, record)
            action = "created"

        if not result.ok:
            return result
        logger.info("Customer %s: %s", action, email)
        return Result.success({**result.value, "action": action})

    async def update_lead_status(
        self, record_id: str, status: LeadStatus, now: Optional[datetime] = None
    ) -> Result[dict]:
        now = now or utc_now()
        patch: dict[str, Any] = {"leadStatus": status, "lastUpdated": now}
        if status == LeadStatus.CONTACTED:
            patch["lastContactDate"] = now
        return await self.update(Collections.CUSTOMERS, record_id, patch)

    # -- quotes and analyses ------------------------------------------------

    async def save_quote_lines(
        self,
        records: list[Mapping[str, Any]],
        expires_at: Optional[datetime] = None,
        now: Optional[datetime] = None,
    ) -> Result[list[dict]]:
        """Append one record per quote line, in input order."""
        now = now or utc_now()
        expires_at = expires_at or now + timedelta(days=settings.business.quote_valid_days)
        stamped = [
            {
                **record,
                "quoteStatus": record.get("quoteStatus", "generated"),
                "dateCreated": now,
                "expirationDate": expires_at,
                "lastUpdated": now,
            }
            for record in records
        ]
        return await self.bulk_insert(Collections.QUOTE_ITEMS, stamped)

    async def list_quote_lines(self, session_id: str) -> Result[list[dict]]:
        result = await self.query(
            Collections.QUOTE_ITEMS,
            Query().eq("sessionId", session_id).ascending("lineIndex").limit(MAX_QUERY_LIMIT),
        )
        return Result.success(result.value.items) if result.ok else result

    async def attach_explanation(
        self, record_id: str, explanation: str, now: Optional[datetime] = None
    ) -> Result[dict]:
        return await self.update(
            Collections.QUOTE_ITEMS,
            record_id,
            {
                "quoteExplanation": explanation,
                "explanationGenerated": True,
                "lastUpdated": now or utc_now(),
            },
        )

    async def save_analysis(self, analysis: AnalysisResult) -> Result[dict]:
        return await self.insert(
            Collections.ANALYSIS_RESULTS,
            {
                "analysisId": analysis.analysis_id,
                "sessionId": analysis.session_id,
                "originalImage": analysis.image_digest,
                "analysisResults": analysis.analysis,
                "detectedMeasurements": {
                    "width": analysis.analysis.estimated_width,
                    "height": analysis.analysis.estimated_height,
                },
                "confidenceScore": analysis.analysis.confidence,
                "qualityScore": analysis.quality_score,
                "aiRecommendations": analysis.analysis.recommendations,
                "source": analysis.source,
                "deviceType": analysis.device_type,
                "timestamp": analysis.timestamp,
                "status": "completed",
            },
        )
