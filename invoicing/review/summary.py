"""Reviewer-facing summaries of a processed invoice.

Computes the overall confidence used to decide between automatic delivery
and manual validation, and exports fields in the review tool's record format.
"""

import math
from dataclasses import asdict, dataclass, field
from typing import Any

from invoicing.documents.fields import FieldName, InvoicePayload, OCRField

HEADER_WEIGHT = 0.4
DETAILS_WEIGHT = 0.6

# Amounts the review tool displays with a decimal comma
MONEY_FIELDS = frozenset(
    {
        FieldName.TOTAL_FACTURA_SIN_IVA,
        FieldName.VALOR_TOTAL_FACTURA,
        FieldName.VALOR_VENTA_ITEM,
    }
)


@dataclass
class ConfidenceSummary:
    """Mean confidences as percentages, rounded to 2 decimals."""

    header: float
    details: float
    total: float

    @property
    def is_full(self) -> bool:
        return self.total == 100


@dataclass
class FieldRecord:
    """One field as the review tool expects it."""

    nombre: str
    fila: int
    confianza: int
    valor_atomizacion: str | None
    es_blanco: int
    valor_cierre: str
    pagina: int = 0
    registro: int = 1
    x: int = 0
    y: int = 0
    ancho: int = 0
    altura: int = 0
    imagen: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class FieldDifference:
    """Mismatch between a produced record and the expected one."""

    nombre: str
    registro: int
    fila: int
    result: dict[str, Any] | None
    expected: dict[str, Any] | None
    issue: str | None = None


@dataclass
class ComparisonReport:
    has_expected: bool
    matches: bool | None = None
    differences: list[FieldDifference] = field(default_factory=list)


def _mean_percent(fields: list[OCRField]) -> float:
    if not fields:
        return 0.0
    return sum(f.confidence for f in fields) / len(fields) * 100


def calculate_confidence(payload: InvoicePayload) -> ConfidenceSummary:
    """Weighted confidence of an invoice: 40% header, 60% details.

    Args:
        payload: Processed invoice data

    Returns:
        Header, details and overall confidence percentages
    """
    header = _mean_percent(payload.encabezado)
    details = _mean_percent(payload.detalles)
    total = header * HEADER_WEIGHT + details * DETAILS_WEIGHT
    return ConfidenceSummary(
        header=round(header, 2),
        details=round(details, 2),
        total=round(total, 2),
    )


def collect_review_errors(payload: InvoicePayload) -> list[str]:
    """Messages for every field a reviewer still has to look at."""
    return [
        f"Field: {f.field_type} Error: {f.error}"
        for f in [*payload.encabezado, *payload.detalles]
        if f.confidence < 1
    ]


def _decimal_comma(text: str) -> str:
    try:
        value = float(text)
    except ValueError:
        return text
    if not math.isfinite(value):
        return text
    if value.is_integer():
        return str(int(value))
    return repr(value).replace(".", ",")


def to_field_record(ocr_field: OCRField) -> FieldRecord:
    text = ocr_field.text or None
    if text and ocr_field.field_type in MONEY_FIELDS:
        text = _decimal_comma(text)
    return FieldRecord(
        nombre=ocr_field.field_type.upper(),
        fila=ocr_field.row or 1,
        confianza=round(ocr_field.confidence * 100),
        valor_atomizacion=text,
        es_blanco=0 if text else 1,
        valor_cierre=text or "",
    )


def to_field_records(payload: InvoicePayload) -> list[FieldRecord]:
    return [to_field_record(f) for f in [*payload.encabezado, *payload.detalles]]


def _key(record: FieldRecord) -> tuple[str, int, int]:
    return record.nombre, record.registro, record.fila


def _snapshot(record: FieldRecord) -> dict[str, Any]:
    return {"valor_cierre": record.valor_cierre, "confianza": record.confianza}


def compare_results(
    result: list[FieldRecord], expected: list[FieldRecord] | None
) -> ComparisonReport:
    """Compare produced records with a reviewer's expected records.

    Records are matched by name, record and row; a pair differs when its
    closing value or its confidence differs.

    Args:
        result: Records produced by the pipeline
        expected: Reviewed records, or None when no review exists

    Returns:
        Report listing every difference, including records present on one
        side only
    """
    if expected is None:
        return ComparisonReport(has_expected=False)

    expected_by_key = {_key(r): r for r in expected}
    result_keys = {_key(r) for r in result}
    differences: list[FieldDifference] = []

    for record in result:
        other = expected_by_key.get(_key(record))
        if other is None:
            differences.append(
                FieldDifference(
                    record.nombre,
                    record.registro,
                    record.fila,
                    result=_snapshot(record),
                    expected=None,
                    issue="missing_in_expected",
                )
            )
        elif (record.valor_cierre, record.confianza) != (other.valor_cierre, other.confianza):
            differences.append(
                FieldDifference(
                    record.nombre,
                    record.registro,
                    record.fila,
                    result=_snapshot(record),
                    expected=_snapshot(other),
                )
            )

    for other in expected:
        if _key(other) not in result_keys:
            differences.append(
                FieldDifference(
                    other.nombre,
                    other.registro,
                    other.fila,
                    result=None,
                    expected=_snapshot(other),
                    issue="missing_in_result",
                )
            )

    return ComparisonReport(has_expected=True, matches=not differences, differences=differences)
