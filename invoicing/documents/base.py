"""Vendor document pipeline.

Vendor layouts differ only in their field sets, the shared inference helpers
they enable, their arithmetic-consistency formulas and their row layout. Each
one is therefore described by a ``VendorConfig`` record, and a single
``InvoiceDocument`` runs the pipeline for all of them:

    normalize -> validate -> infer -> exclude -> prune, then format()

Every stage runs even when an earlier one flagged the invoice as invalid; the
caller decides what to do with an invalid result.
"""

import logging
from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping
from dataclasses import dataclass
from datetime import date
from enum import StrEnum
from types import MappingProxyType

from invoicing.documents.catalog import CatalogPorts, HistoricalResult, normalize_description
from invoicing.documents.confidence import (
    ConfidenceStrategy,
    SnapAboveStrategy,
    ThresholdTableStrategy,
)
from invoicing.documents.constants import (
    EMBALAJES,
    ERROR_DATE_FORMAT,
    ERROR_DATE_OBSOLETE,
    ERROR_INVOICE_NUMBER,
    RAZON_SOCIAL,
    REDUCCION,
)
from invoicing.documents.errors import FormatNotReadyError
from invoicing.documents.fields import (
    CanonicalResultRow,
    FieldName,
    InvoicePayload,
    OCRField,
    ValidationResult,
)
from invoicing.documents.formatter import RowLayout, build_rows
from invoicing.documents.heuristics import (
    add_missing_fields,
    group_by_row,
    is_numeric_tail,
    is_valid_date,
    obsolescence_check,
    parse_and_fix_number,
    remove_fields,
    to_field_map,
    to_number,
)
from invoicing.documents.metrics import (
    confidence_upgrades_total,
    documents_processed_total,
    field_errors_total,
    rows_excluded_total,
    stage_duration_seconds,
)
from invoicing.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

Product = dict[str, OCRField]
NormalizeStep = Callable[["InvoiceDocument"], None]
InferenceStep = Callable[["InvoiceDocument"], Awaitable[None]]
DateRepair = Callable[[OCRField, date | None], bool]


class BusinessNamePolicy(StrEnum):
    """How the header business name is corroborated."""

    ALIASES = "aliases"  # known OCR spellings only
    TRUSTED = "trusted"  # vendor prints a fixed name
    NONE = "none"


@dataclass(frozen=True)
class VendorConfig:
    """Everything that distinguishes one vendor layout from another.

    Attributes:
        name: Short vendor identifier used in logs and metrics
        header_fields: Header field types printed by the vendor
        detail_fields: Detail field types printed per product row
        layout: Canonical row mapping used by ``format()``
        normalize: Cleanup steps, each idempotent
        inference: Vendor inference steps run after the shared header helpers
        validate_date: Whether the invoice date decides validity
        obsolescence_months: Vendor window, None uses the configured default
        date_repair: Repair applied to the invoice date before validation
        infer_date: Upgrade a well-formed invoice date
        infer_invoice_number: Normalize the invoice number to its numeric tail
        business_name: Business name corroboration policy
        exclude_by_catalog: Drop rows matching the excluded-products catalog
        exclusion_exact_recheck: Require the catalog match to equal the description
        company_id: Company scope for fuzzy lookups, None uses the default
        keyword_denylist: Description substrings whose rows are dropped
        pruned_header_fields: Header types removed before formatting
        pruned_detail_fields: Detail types removed before formatting
        thresholds: Per-field threshold table, replaces the default snap policy
        snap_confidence: Apply the default snap policy when no table is set
        adjustments: Steps run after the confidence policy
    """

    name: str
    header_fields: tuple[str, ...]
    detail_fields: tuple[str, ...]
    layout: RowLayout = RowLayout()
    normalize: tuple[NormalizeStep, ...] = ()
    inference: tuple[InferenceStep, ...] = ()
    validate_date: bool = True
    obsolescence_months: int | None = None
    date_repair: DateRepair | None = None
    infer_date: bool = True
    infer_invoice_number: bool = True
    business_name: BusinessNamePolicy = BusinessNamePolicy.ALIASES
    exclude_by_catalog: bool = False
    exclusion_exact_recheck: bool = True
    company_id: int | None = None
    keyword_denylist: tuple[str, ...] = ()
    pruned_header_fields: tuple[str, ...] = ()
    pruned_detail_fields: tuple[str, ...] = ()
    thresholds: Mapping[str, float] | None = None
    snap_confidence: bool = True
    adjustments: tuple[InferenceStep, ...] = ()

    def __post_init__(self) -> None:
        if self.thresholds is not None:
            object.__setattr__(self, "thresholds", MappingProxyType(dict(self.thresholds)))


# ---------------------------------------------------------------------------
# Shared inference helpers
# ---------------------------------------------------------------------------


def infer_date(field: OCRField | None) -> None:
    """Upgrade a ``dd/mm/yyyy`` invoice date that validation did not flag."""
    if field is not None and is_valid_date(field.text) and not field.error:
        field.upgrade()


def infer_invoice_number(field: OCRField | None) -> None:
    """Keep the trailing five digits of the invoice number.

    ``"INV-00-61443"`` becomes ``"61443"`` with confidence 1.0; a non-numeric
    tail is flagged instead.
    """
    if field is None:
        return
    tail = (field.text or "")[-5:]
    if is_numeric_tail(tail):
        field.upgrade()
        field.text = tail
    else:
        field.error = ERROR_INVOICE_NUMBER


def infer_business_name(field: OCRField | None) -> None:
    if field is None:
        return
    canonical = RAZON_SOCIAL.get(field.text or "")
    if canonical:
        field.text = canonical
        field.upgrade()


def infer_packaging_type(field: OCRField | None) -> None:
    if field is not None and (field.text or "").strip().upper() in EMBALAJES:
        field.upgrade()


def is_reduction(product: Mapping[str, OCRField]) -> bool:
    """True for credit/return rows (description ``REDUCCION``)."""
    description = product.get(FieldName.ITEM_DESCRIPCION_PRODUCTO)
    return description is not None and (description.text or "").strip().upper() == REDUCCION


def negate_text(field: OCRField | None) -> None:
    """Make a printed amount negative. Applying it twice is a no-op."""
    if field is None or not field.text:
        return
    text = field.text.strip()
    if not text.startswith("-") and to_number(parse_and_fix_number(text)) != 0:
        field.text = f"-{text}"


def add_missing_detail_fields(document: "InvoiceDocument") -> None:
    """Normalize step: every product row carries every declared detail field."""
    document.data.detalles = add_missing_fields(
        document.data.detalles, document.config.detail_fields
    )


def negate_reduction_sales(document: "InvoiceDocument") -> None:
    """Normalize step: sale values of REDUCCION rows are credits."""
    for product in document.products(include_reductions=True):
        if is_reduction(product):
            negate_text(product.get(FieldName.VALOR_VENTA_ITEM))


async def corroborate_with_catalog(
    document: "InvoiceDocument",
    product: Product,
    *,
    try_trimmed: bool = True,
) -> HistoricalResult | None:
    """Upgrade description and product code from the reference catalogs.

    The description lookup first drops the leading character (OCR often reads
    a stray mark before the text) and then falls back to the full text.

    Returns:
        The historical result found for the description, for vendor checks
        against its other columns
    """
    header = document.header()
    business_name = header.get(FieldName.RAZON_SOCIAL)
    business_text = (business_name.text if business_name else None) or ""
    description = product.get(FieldName.ITEM_DESCRIPCION_PRODUCTO)
    code = product.get(FieldName.CODIGO_PRODUCTO)
    historical = document.catalogs.historical

    result = None
    if description is not None and description.text:
        if try_trimmed:
            result = await historical.find_by_description_and_business_name(
                business_text, description.text[1:]
            )
        if result is None:
            result = await historical.find_by_description_and_business_name(
                business_text, description.text
            )
        if result is not None and normalize_description(
            result.description
        ) == normalize_description(description.text):
            description.upgrade()

    if code is not None and code.text:
        known = await historical.find_product_by_code(code.text)
        if known is not None and known.product_code == code.text:
            code.upgrade()

    return result


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------


class InvoiceDocument:
    """One invoice being validated against its vendor configuration.

    Instances own their payload and are mutated in place by the pipeline.
    Different instances may be processed concurrently as long as they share
    only the (stateless) catalog ports.
    """

    def __init__(
        self,
        config: VendorConfig,
        payload: InvoicePayload,
        catalogs: CatalogPorts,
        settings: Settings | None = None,
        today: date | None = None,
    ) -> None:
        """Initialize document.

        Args:
            config: Vendor configuration
            payload: Freshly deserialized OCR payload
            catalogs: Catalog lookup ports
            settings: Application settings
            today: Reference date for obsolescence checks (defaults to today)
        """
        self.config = config
        self.data = payload
        self.catalogs = catalogs
        self.settings = settings or get_settings()
        self.today = today
        self.errors: dict[str, str] = {}
        self.is_valid = True
        self._processed = False
        self._is_recent = obsolescence_check(self.settings.obsolescence_policy)

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def company_id(self) -> int:
        if self.config.company_id is not None:
            return self.config.company_id
        return self.settings.default_company_id

    @property
    def processed(self) -> bool:
        return self._processed

    # -- accessors ----------------------------------------------------------

    def header(self) -> dict[str, OCRField]:
        return to_field_map(self.data.encabezado)

    def products(self, include_reductions: bool = False) -> list[Product]:
        """Detail fields grouped per product row, in row order.

        REDUCCION rows are skipped unless ``include_reductions`` is set, since
        they are fully trusted and never enter arithmetic checks.
        """
        products = [to_field_map(group) for group in group_by_row(self.data.detalles)]
        if include_reductions:
            return products
        return [product for product in products if not is_reduction(product)]

    def fields(self) -> Iterator[OCRField]:
        yield from self.data.encabezado
        yield from self.data.detalles

    def matches(self, expected: float | None, observed: float) -> bool:
        """Compare a computed amount with a printed one within the tolerance."""
        if expected is None:
            return False
        return abs(expected - observed) <= self.settings.arithmetic_tolerance

    def confidence_strategy(self) -> ConfidenceStrategy | None:
        if self.config.thresholds is not None:
            return ThresholdTableStrategy(self.config.thresholds)
        if self.config.snap_confidence:
            return SnapAboveStrategy(self.settings.confidence_snap_threshold)
        return None

    # -- pipeline stages ----------------------------------------------------

    def normalize(self) -> "InvoiceDocument":
        header = self.header()
        missing = [name for name in self.config.header_fields if name not in header]
        if missing:
            logger.debug(
                f"Invoice {self.data.factura_id} ({self.name}) lacks header fields: "
                f"{', '.join(missing)}"
            )
        for step in self.config.normalize:
            step(self)
        return self

    def validate(self) -> None:
        """Check the invoice date; malformed or obsolete dates invalidate the invoice."""
        if not self.config.validate_date:
            return

        field = self.header().get(FieldName.FECHA_FACTURA)
        if field is not None and self.config.date_repair is not None:
            self.config.date_repair(field, self.today)

        text = field.text if field is not None else None
        if not is_valid_date(text):
            self._invalidate(field, ERROR_DATE_FORMAT)
            return

        months = self.config.obsolescence_months or self.settings.obsolescence_months
        if not self._is_recent(text, months, self.today):
            self._invalidate(field, ERROR_DATE_OBSOLETE)

    def _invalidate(self, field: OCRField | None, message: str) -> None:
        logger.info(f"Invoice {self.data.factura_id} ({self.name}) invalid: {message}")
        self.is_valid = False
        self.errors[FieldName.FECHA_FACTURA.value] = message
        if field is not None:
            field.error = message

    async def infer(self) -> None:
        """Raise confidences where the values are corroborated.

        Confidences are never lowered. Catalog failures propagate.
        """
        before = {id(field): field.confidence for field in self.fields()}
        header = self.header()

        if self.config.infer_date:
            infer_date(header.get(FieldName.FECHA_FACTURA))
        if self.config.infer_invoice_number:
            infer_invoice_number(header.get(FieldName.NUMERO_FACTURA))

        business_name = header.get(FieldName.RAZON_SOCIAL)
        if self.config.business_name is BusinessNamePolicy.ALIASES:
            infer_business_name(business_name)
        elif self.config.business_name is BusinessNamePolicy.TRUSTED and business_name:
            business_name.upgrade()

        for group in group_by_row(self.data.detalles):
            if is_reduction(to_field_map(group)):
                for field in group:
                    field.upgrade()

        for step in self.config.inference:
            await step(self)

        strategy = self.confidence_strategy()
        if strategy is not None:
            strategy.apply(self.fields())

        for adjustment in self.config.adjustments:
            await adjustment(self)

        upgrades = sum(
            1
            for field in self.fields()
            if field.confidence == 1.0 and before.get(id(field), 1.0) < 1.0
        )
        confidence_upgrades_total.labels(vendor=self.name).inc(upgrades)
        logger.debug(f"Invoice {self.data.factura_id}: {upgrades} fields corroborated")

    async def exclude(self) -> None:
        """Drop product rows that must not be reported."""
        if not self.config.exclude_by_catalog and not self.config.keyword_denylist:
            return

        groups = group_by_row(self.data.detalles)
        if not groups:
            return

        kept: list[OCRField] = []
        for group in groups:
            description = to_field_map(group).get(FieldName.ITEM_DESCRIPCION_PRODUCTO)
            reason = await self._exclusion_reason(description)
            if reason is not None:
                logger.info(
                    f"Excluding row {group[0].row} of invoice {self.data.factura_id} "
                    f"({reason}): {description.text!r}"
                )
                rows_excluded_total.labels(vendor=self.name, reason=reason).inc()
                continue
            kept.extend(group)
        self.data.detalles = kept

    async def _exclusion_reason(self, description: OCRField | None) -> str | None:
        text = description.text if description is not None else None
        if not text:
            return None

        upper = text.upper()
        if any(keyword in upper for keyword in self.config.keyword_denylist):
            return "keyword"

        if self.config.exclude_by_catalog:
            match = await self.catalogs.excluded.find_excluded_by_fuzzy_description(
                text, self.company_id
            )
            if match is not None and (
                not self.config.exclusion_exact_recheck
                or normalize_description(match.description) == normalize_description(text)
            ):
                return "catalog"
        return None

    def prune(self) -> None:
        self.data.encabezado = remove_fields(
            self.data.encabezado, self.config.pruned_header_fields
        )
        self.data.detalles = remove_fields(self.data.detalles, self.config.pruned_detail_fields)

    async def process(self) -> "InvoiceDocument":
        """Run every pipeline stage in order.

        Returns:
            This document, ready for ``get()`` and ``format()``
        """
        logger.info(f"Processing {self.name} invoice {self.data.factura_id}")

        with stage_duration_seconds.labels(vendor=self.name, stage="normalize").time():
            self.normalize()
        with stage_duration_seconds.labels(vendor=self.name, stage="validate").time():
            self.validate()
        with stage_duration_seconds.labels(vendor=self.name, stage="infer").time():
            await self.infer()
        with stage_duration_seconds.labels(vendor=self.name, stage="exclude").time():
            await self.exclude()
        with stage_duration_seconds.labels(vendor=self.name, stage="prune").time():
            self.prune()

        self._processed = True
        flagged = sum(1 for field in self.fields() if field.error)
        documents_processed_total.labels(
            vendor=self.name, valid=str(self.is_valid).lower()
        ).inc()
        field_errors_total.labels(vendor=self.name).inc(flagged)
        logger.info(
            f"Invoice {self.data.factura_id} processed: valid={self.is_valid}, "
            f"fields flagged={flagged}"
        )
        return self

    def get(self) -> ValidationResult:
        return ValidationResult(data=self.data, errors=dict(self.errors), is_valid=self.is_valid)

    def format(self) -> list[CanonicalResultRow]:
        """Canonical rows for the processed invoice.

        Raises:
            FormatNotReadyError: If ``process()`` has not run
        """
        if not self._processed:
            raise FormatNotReadyError(
                f"Invoice {self.data.factura_id} must be processed before formatting"
            )
        return build_rows(self.data, self.config.layout)


def flag_all(fields: Iterable[OCRField | None], message: str) -> None:
    """Record the same review message on every present field."""
    for field in fields:
        if field is not None:
            field.error = message


def upgrade_all(fields: Iterable[OCRField | None]) -> None:
    for field in fields:
        if field is not None:
            field.upgrade()
