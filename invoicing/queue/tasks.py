"""Async task definitions for invoice validation.

Uses arq (async Redis queue) for background task processing.
Implements per-invoice validation as a background job and a bounded
concurrent batch helper.

Based on arq documentation:
https://arq-docs.helpmanual.io/
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from arq.connections import RedisSettings
from pydantic import BaseModel

from invoicing.documents.base import InvoiceDocument
from invoicing.documents.catalog import CatalogPorts, in_memory_catalogs
from invoicing.documents.factory import DocumentFactory
from invoicing.documents.fields import InvoicePayload
from invoicing.review.summary import calculate_confidence, collect_review_errors
from invoicing.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

JOB_TTL_SECONDS = 86400


class JobResult(BaseModel):
    """Result of a validation job.

    Attributes:
        job_id: Unique job identifier
        status: Job status (processing, completed, failed)
        label: Vendor label the invoice was dispatched on
        invoice_id: Invoice being validated
        is_valid: Whether the invoice passed the date rules
        errors: Document-level errors keyed by field type
        review_errors: Field messages left for manual review
        confidence: Weighted overall confidence percentage
        data: Processed payload, in wire format
        rows: Canonical rows, in wire format
        error: Error message (if failed)
        created_at: Job creation timestamp
        completed_at: Job completion timestamp
    """

    job_id: str
    status: str
    label: str
    invoice_id: int | None = None
    is_valid: bool | None = None
    errors: dict[str, str] | None = None
    review_errors: list[str] | None = None
    confidence: float | None = None
    data: dict[str, Any] | None = None
    rows: list[dict[str, Any]] | None = None
    error: str | None = None
    created_at: str
    completed_at: str | None = None


async def validate_invoice(
    ctx: dict[str, Any],
    job_id: str,
    label: str,
    payload: dict[str, Any],
) -> dict[str, Any]:
    """Run one OCR payload through its vendor pipeline.

    Unsupported labels and catalog failures end the job as failed; jobs are
    not retried.

    Args:
        ctx: arq context (contains redis connection)
        job_id: Unique job identifier
        label: Vendor label assigned to the invoice
        payload: OCR payload with camelCase keys

    Returns:
        JobResult as dict
    """
    settings: Settings = ctx.get("settings") or get_settings()
    catalogs: CatalogPorts = ctx.get("catalogs") or in_memory_catalogs(
        settings.fuzzy_max_distance
    )
    redis = ctx["redis"]

    result = JobResult(
        job_id=job_id,
        status="processing",
        label=label,
        created_at=datetime.utcnow().isoformat(),
    )
    await redis.set(f"job:{job_id}", result.model_dump_json(), ex=JOB_TTL_SECONDS)

    try:
        invoice = InvoicePayload.model_validate(payload)
        result.invoice_id = invoice.factura_id
        result.label = DocumentFactory.resolve_label(label, invoice.tipo_factura_ocr)
        logger.info(f"Validating invoice {invoice.factura_id} as {result.label!r} (job {job_id})")

        document = DocumentFactory.create(result.label, invoice, catalogs, settings)
        await document.process()
        validated = document.get()

        result.is_valid = validated.is_valid
        result.errors = validated.errors
        result.review_errors = collect_review_errors(validated.data)
        result.confidence = calculate_confidence(validated.data).total
        result.data = validated.data.to_wire()
        result.rows = [row.to_wire() for row in document.format()]
        result.status = "completed"

    except Exception as e:
        logger.exception(f"Job {job_id} failed with error: {e}")
        result.status = "failed"
        result.error = str(e)

    result.completed_at = datetime.utcnow().isoformat()
    await redis.set(f"job:{job_id}", result.model_dump_json(), ex=JOB_TTL_SECONDS)
    logger.info(f"Job {job_id} completed with status: {result.status}")

    return result.model_dump()


async def process_invoices(
    invoices: Iterable[tuple[str, InvoicePayload]],
    catalogs: CatalogPorts,
    settings: Settings | None = None,
    today: date | None = None,
) -> list[InvoiceDocument]:
    """Validate many invoices concurrently.

    At most ``settings.max_concurrent_documents`` documents are processed at
    once. An unsupported label fails the batch before any document runs.
    Otherwise every document runs to completion and the first failure, in
    input order, is raised afterwards.

    Args:
        invoices: (label, payload) pairs
        catalogs: Catalog lookup ports shared by every document
        settings: Application settings
        today: Reference date for date rules

    Returns:
        Processed documents, in input order
    """
    settings = settings or get_settings()
    semaphore = asyncio.Semaphore(settings.max_concurrent_documents)
    documents = [
        DocumentFactory.create(label, payload, catalogs, settings, today)
        for label, payload in invoices
    ]

    async def run(document: InvoiceDocument) -> InvoiceDocument:
        async with semaphore:
            return await document.process()

    results = await asyncio.gather(
        *(run(document) for document in documents), return_exceptions=True
    )
    failures = [result for result in results if isinstance(result, BaseException)]
    if failures:
        logger.error(f"{len(failures)} of {len(documents)} invoices failed to process")
        raise failures[0]
    return list(results)


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup hook - initialize shared services.

    Called once when worker starts. Catalog ports default to the in-memory
    implementations unless a deployment injected database-backed ones.
    """
    logger.info("Initializing worker services...")
    settings = get_settings()
    ctx["settings"] = settings
    ctx.setdefault("catalogs", in_memory_catalogs(settings.fuzzy_max_distance))
    logger.info("Worker services initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown hook - cleanup resources."""
    logger.info("Worker shutting down...")


class WorkerSettings:
    """arq worker settings.

    Defines the worker configuration including:
    - Task functions to register
    - Redis connection settings
    - Job timeout settings
    """

    functions = [validate_invoice]
    on_startup = startup
    on_shutdown = shutdown

    # These will be set from environment
    redis_settings = None
    max_jobs = 10
    job_timeout = 300
    max_tries = 1

    @classmethod
    def get_redis_settings(cls) -> RedisSettings:
        """Get Redis settings from configuration."""
        return RedisSettings.from_dsn(get_settings().redis_url)
