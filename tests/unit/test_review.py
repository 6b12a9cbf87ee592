"""Unit tests for reviewer-facing summaries."""

from collections.abc import Callable

import pytest

from invoicing.documents.fields import FieldName as F
from invoicing.documents.fields import InvoicePayload, OCRField
from invoicing.review.summary import (
    FieldRecord,
    calculate_confidence,
    collect_review_errors,
    compare_results,
    to_field_record,
    to_field_records,
)


def _record(nombre: str, valor: str, confianza: int = 100, fila: int = 1) -> FieldRecord:
    return FieldRecord(
        nombre=nombre,
        fila=fila,
        confianza=confianza,
        valor_atomizacion=valor,
        es_blanco=0,
        valor_cierre=valor,
    )


class TestCalculateConfidence:
    """Test calculate_confidence."""

    def test_weighted_total(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should weigh header 40% and details 60%."""
        payload = make_payload(
            {F.FECHA_FACTURA: ("01/10/2026", 1.0), F.NUMERO_FACTURA: ("12345", 0.5)},
            [{F.VALOR_VENTA_ITEM: ("100", 1.0)}],
        )

        summary = calculate_confidence(payload)

        assert summary.header == 75.0
        assert summary.details == 100.0
        assert summary.total == 90.0
        assert summary.is_full is False

    def test_full_confidence(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should report a fully corroborated invoice."""
        payload = make_payload(
            {F.FECHA_FACTURA: ("01/10/2026", 1.0)},
            [{F.VALOR_VENTA_ITEM: ("100", 1.0)}],
        )

        assert calculate_confidence(payload).is_full is True

    def test_empty_side_counts_as_zero(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should not divide by zero on an invoice without details."""
        payload = make_payload({F.FECHA_FACTURA: ("01/10/2026", 1.0)}, [])

        summary = calculate_confidence(payload)

        assert summary.details == 0.0
        assert summary.total == 40.0

    def test_rounding(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should round percentages to two decimals."""
        payload = make_payload(
            {
                F.FECHA_FACTURA: ("", 1.0),
                F.NUMERO_FACTURA: ("", 0.0),
                F.RAZON_SOCIAL: ("", 0.0),
            },
            [],
        )

        assert calculate_confidence(payload).header == 33.33


class TestCollectReviewErrors:
    """Test collect_review_errors."""

    def test_only_uncertain_fields(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should list fields below full confidence with their message."""
        payload = make_payload(
            {F.FECHA_FACTURA: ("01/10/2026", 1.0)},
            [{F.VALOR_VENTA_ITEM: ("100", 0.4)}],
        )
        payload.encabezado[0].error = "ignored"
        payload.detalles[0].error = "Valor venta no coincide"

        assert collect_review_errors(payload) == [
            "Field: valor_venta_item Error: Valor venta no coincide"
        ]

    def test_field_without_error(self, make_payload: Callable[..., InvoicePayload]) -> None:
        """Should still report uncertain fields without a recorded error."""
        payload = make_payload({F.NUMERO_FACTURA: ("123", 0.5)}, [])

        assert collect_review_errors(payload) == ["Field: numero_factura Error: None"]


class TestFieldRecords:
    """Test review tool record export."""

    @pytest.mark.parametrize(
        "text,expected",
        [("12888.4", "12888,4"), ("1200", "1200"), ("1200.0", "1200"), ("abc", "abc")],
    )
    def test_money_decimal_comma(self, text: str, expected: str) -> None:
        """Should print money with a decimal comma."""
        field = OCRField(field_type=F.VALOR_TOTAL_FACTURA, text=text, confidence=1.0)

        assert to_field_record(field).valor_cierre == expected

    def test_other_fields_unchanged(self) -> None:
        """Should keep non-money text as is."""
        field = OCRField(field_type=F.UNIDADES_VENDIDAS, text="1.5", confidence=0.456, row=3)

        record = to_field_record(field)

        assert record.nombre == "UNIDADES_VENDIDAS"
        assert record.fila == 3
        assert record.confianza == 46
        assert record.valor_cierre == "1.5"
        assert record.es_blanco == 0

    def test_blank_field(self) -> None:
        """Should mark empty fields as blank."""
        record = to_field_record(OCRField(field_type=F.CODIGO_PRODUCTO, text=""))

        assert record.es_blanco == 1
        assert record.valor_atomizacion is None
        assert record.valor_cierre == ""
        assert record.fila == 1

    def test_records_in_payload_order(self, sample_payload: InvoicePayload) -> None:
        """Should export header fields before detail fields."""
        records = to_field_records(sample_payload)

        assert len(records) == len(sample_payload.encabezado) + len(sample_payload.detalles)
        assert records[0].nombre == "FECHA_FACTURA"
        assert records[-1].nombre == "APLICA_IVA_ITEM"
        assert records[0].to_dict()["registro"] == 1


class TestCompareResults:
    """Test compare_results."""

    def test_no_expected(self) -> None:
        """Should report that no reviewed result exists."""
        report = compare_results([_record("A", "1")], None)

        assert report.has_expected is False
        assert report.matches is None
        assert report.differences == []

    def test_identical(self) -> None:
        """Should match identical records."""
        records = [_record("A", "1"), _record("B", "2")]

        report = compare_results(records, list(records))

        assert report.matches is True

    def test_value_and_confidence_differences(self) -> None:
        """Should list value and confidence mismatches."""
        result = [_record("A", "1"), _record("B", "2", confianza=50)]
        expected = [_record("A", "9"), _record("B", "2")]

        report = compare_results(result, expected)

        assert report.matches is False
        assert [d.nombre for d in report.differences] == ["A", "B"]
        assert report.differences[0].result == {"valor_cierre": "1", "confianza": 100}
        assert report.differences[0].expected == {"valor_cierre": "9", "confianza": 100}
        assert report.differences[1].issue is None

    def test_one_sided_records(self) -> None:
        """Should report records present on only one side."""
        result = [_record("A", "1"), _record("A", "1", fila=2)]
        expected = [_record("A", "1"), _record("C", "3")]

        report = compare_results(result, expected)

        issues = {(d.nombre, d.fila): d.issue for d in report.differences}
        assert issues == {("A", 2): "missing_in_expected", ("C", 1): "missing_in_result"}
