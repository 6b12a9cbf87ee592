"""Unit tests for the shared document pipeline."""

import logging
from collections.abc import Callable
from datetime import date
from unittest.mock import AsyncMock

import pytest

from invoicing.documents.base import (
    BusinessNamePolicy,
    InvoiceDocument,
    VendorConfig,
    add_missing_detail_fields,
    corroborate_with_catalog,
    infer_invoice_number,
    negate_text,
)
from invoicing.documents.catalog import (
    CatalogPorts,
    ExcludedProduct,
    HistoricalResult,
    InMemoryExcludedProductCatalog,
    InMemoryHistoricalResultCatalog,
)
from invoicing.documents.constants import ERROR_DATE_FORMAT, ERROR_DATE_OBSOLETE
from invoicing.documents.errors import FormatNotReadyError
from invoicing.documents.fields import FieldName as F
from invoicing.documents.fields import InvoicePayload, OCRField
from invoicing.shared.config import Settings

PLAIN = VendorConfig(
    name="plain",
    header_fields=(F.FECHA_FACTURA, F.NUMERO_FACTURA, F.RAZON_SOCIAL),
    detail_fields=(F.ITEM_DESCRIPCION_PRODUCTO, F.VALOR_VENTA_ITEM),
)


def _header(date_text: str = "01/10/2026", number: str = "INV-00-61443") -> dict:
    return {
        F.FECHA_FACTURA: (date_text, 0.5),
        F.NUMERO_FACTURA: (number, 0.5),
        F.RAZON_SOCIAL: ("Coca-Cola", 0.5),
    }


@pytest.fixture
def document_for(
    make_payload: Callable[..., InvoicePayload],
    catalogs: CatalogPorts,
    settings: Settings,
    today: date,
) -> Callable[..., InvoiceDocument]:
    def _make(config: VendorConfig = PLAIN, header: dict | None = None, rows=None, **kwargs):
        payload = make_payload(header if header is not None else _header(), rows or [])
        return InvoiceDocument(
            config,
            payload,
            kwargs.get("catalogs", catalogs),
            kwargs.get("settings", settings),
            today,
        )

    return _make


class TestNormalize:
    """Test the declared field sets used while normalizing."""

    def test_missing_detail_fields_added(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should give every row every declared detail field."""
        config = VendorConfig(
            name="x",
            header_fields=(),
            detail_fields=PLAIN.detail_fields,
            normalize=(add_missing_detail_fields,),
        )
        rows = [{F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.9)}, {F.VALOR_VENTA_ITEM: ("10", 0.9)}]
        document = document_for(config, rows=rows).normalize()

        for product in document.products():
            assert set(product) == {F.ITEM_DESCRIPCION_PRODUCTO, F.VALOR_VENTA_ITEM}
        added = document.products()[0][F.VALOR_VENTA_ITEM]
        assert (added.text, added.confidence, added.row) == ("", 0.0, 1)

    def test_missing_header_fields_logged(
        self, document_for: Callable[..., InvoiceDocument], caplog: pytest.LogCaptureFixture
    ) -> None:
        """Should report declared header fields the payload lacks."""
        header = {F.FECHA_FACTURA: ("01/10/2026", 0.5)}

        with caplog.at_level(logging.DEBUG, logger="invoicing.documents.base"):
            document_for(header=header).normalize()

        assert "lacks header fields: numero_factura, razon_social" in caplog.text


class TestValidate:
    """Test date validation."""

    def test_recent_date_is_valid(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should accept a recent well-formed date."""
        document = document_for()

        document.validate()

        assert document.is_valid is True
        assert document.errors == {}

    def test_malformed_date_invalidates(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should invalidate and flag a malformed date."""
        document = document_for(header=_header("2825-18-24"))

        document.validate()

        assert document.is_valid is False
        assert document.errors == {"fecha_factura": ERROR_DATE_FORMAT}
        assert document.header()[F.FECHA_FACTURA].error == ERROR_DATE_FORMAT

    def test_obsolete_date_invalidates(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should invalidate a date outside the window."""
        document = document_for(header=_header("01/06/2026"))

        document.validate()

        assert document.is_valid is False
        assert document.errors["fecha_factura"] == ERROR_DATE_OBSOLETE

    def test_date_rules_disabled(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should skip date rules for pass-through vendors."""
        config = VendorConfig(name="x", header_fields=(), detail_fields=(), validate_date=False)
        document = document_for(config, header=_header("garbage"))

        document.validate()

        assert document.is_valid is True


class TestInfer:
    """Test shared inference."""

    @pytest.mark.asyncio
    async def test_header_helpers(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should corroborate date, invoice number and business name."""
        document = document_for()
        document.validate()

        await document.infer()

        header = document.header()
        assert header[F.FECHA_FACTURA].confidence == 1.0
        assert header[F.NUMERO_FACTURA].text == "61443"
        assert header[F.NUMERO_FACTURA].confidence == 1.0
        assert header[F.RAZON_SOCIAL].text == "COCA COLA"
        assert header[F.RAZON_SOCIAL].confidence == 1.0

    def test_invoice_number_non_numeric_tail(self) -> None:
        """Should flag an invoice number without a numeric tail."""
        field = OCRField(field_type=F.NUMERO_FACTURA, text="FV-12A", confidence=0.5)

        infer_invoice_number(field)

        assert field.error == "Número de factura inválido"
        assert field.confidence == 0.5
        assert field.text == "FV-12A"

    @pytest.mark.asyncio
    async def test_reduction_rows_fully_trusted(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should upgrade every field of a REDUCCION row."""
        document = document_for(
            rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("reduccion", 0.2), F.VALOR_VENTA_ITEM: ("9", 0.1)}]
        )

        await document.infer()

        assert all(field.confidence == 1.0 for field in document.data.detalles)

    @pytest.mark.asyncio
    async def test_confidence_never_decreases(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should only raise confidences and keep them in [0, 1]."""
        document = document_for(
            rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.97), F.VALOR_VENTA_ITEM: ("10", 0.3)}]
        )
        before = [field.confidence for field in document.fields()]

        await document.infer()

        after = [field.confidence for field in document.fields()]
        assert all(b <= a <= 1.0 for b, a in zip(before, after))

    @pytest.mark.asyncio
    async def test_business_name_policies(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should trust the name only under the trusted policy."""
        trusted = VendorConfig(
            name="t", header_fields=(), detail_fields=(), business_name=BusinessNamePolicy.TRUSTED
        )
        header = {F.RAZON_SOCIAL: ("POSTOBON S.A.", 0.4)}
        trusted_document = document_for(trusted, header=header)
        plain_document = document_for(header=header)

        await trusted_document.infer()
        await plain_document.infer()

        assert trusted_document.header()[F.RAZON_SOCIAL].confidence == 1.0
        assert plain_document.header()[F.RAZON_SOCIAL].confidence == 0.4

    @pytest.mark.asyncio
    async def test_catalog_failure_propagates(
        self, document_for: Callable[..., InvoiceDocument], catalogs: CatalogPorts
    ) -> None:
        """Should let catalog errors escape the pipeline."""
        historical = AsyncMock()
        historical.find_by_description_and_business_name.side_effect = ConnectionError("db down")
        failing = CatalogPorts(historical, catalogs.excluded, catalogs.products)

        async def lookup(document: InvoiceDocument) -> None:
            for product in document.products():
                await corroborate_with_catalog(document, product)

        config = VendorConfig(name="x", header_fields=(), detail_fields=(), inference=(lookup,))
        document = document_for(
            config, rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.5)}], catalogs=failing
        )

        with pytest.raises(ConnectionError):
            await document.process()


class TestCorroborateWithCatalog:
    """Test catalog corroboration."""

    @pytest.mark.asyncio
    async def test_trimmed_description_match(
        self, document_for: Callable[..., InvoiceDocument], catalogs: CatalogPorts
    ) -> None:
        """Should find the description after dropping a stray leading character."""
        historical = InMemoryHistoricalResultCatalog(
            [HistoricalResult(business_name="COCA COLA", description="AGUA MANANTIAL")],
            product_codes=["A1"],
        )
        ports = CatalogPorts(historical, catalogs.excluded, catalogs.products)
        document = document_for(
            header={F.RAZON_SOCIAL: ("COCA COLA", 1.0)},
            rows=[
                {
                    F.ITEM_DESCRIPCION_PRODUCTO: ("|AGUA MANANTIAL", 0.5),
                    F.CODIGO_PRODUCTO: ("A1", 0.5),
                }
            ],
            catalogs=ports,
        )
        (product,) = document.products()

        result = await corroborate_with_catalog(document, product)

        assert result is not None
        # Found via the trimmed text, but the printed text differs
        assert product[F.ITEM_DESCRIPCION_PRODUCTO].confidence == 0.5
        assert product[F.CODIGO_PRODUCTO].confidence == 1.0

    @pytest.mark.asyncio
    async def test_exact_description_upgrades(
        self, document_for: Callable[..., InvoiceDocument], catalogs: CatalogPorts
    ) -> None:
        """Should upgrade a description equal to the catalog one."""
        historical = InMemoryHistoricalResultCatalog(
            [HistoricalResult(business_name="COCA COLA", description="AGUA MANANTIAL")]
        )
        ports = CatalogPorts(historical, catalogs.excluded, catalogs.products)
        document = document_for(
            header={F.RAZON_SOCIAL: ("COCA COLA", 1.0)},
            rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("agua manantial", 0.5)}],
            catalogs=ports,
        )
        (product,) = document.products()

        await corroborate_with_catalog(document, product)

        assert product[F.ITEM_DESCRIPCION_PRODUCTO].confidence == 1.0


class TestExcludeAndPrune:
    """Test row exclusion and field pruning."""

    @pytest.mark.asyncio
    async def test_keyword_exclusion(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should drop rows whose description contains a denylisted keyword."""
        config = VendorConfig(
            name="x", header_fields=(), detail_fields=(), keyword_denylist=("TRULU",)
        )
        document = document_for(
            config,
            rows=[
                {F.ITEM_DESCRIPCION_PRODUCTO: ("GOMA TRULU 100G", 0.9)},
                {F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.9)},
            ],
        )

        await document.exclude()

        assert [p[F.ITEM_DESCRIPCION_PRODUCTO].text for p in document.products()] == ["AGUA"]

    @pytest.mark.asyncio
    async def test_catalog_exclusion_rechecks_description(
        self, document_for: Callable[..., InvoiceDocument], catalogs: CatalogPorts
    ) -> None:
        """Should drop a row only when the fuzzy match equals its description."""
        excluded = InMemoryExcludedProductCatalog(
            [ExcludedProduct(description="BOLSA PLASTICA", company_id=1)]
        )
        ports = CatalogPorts(catalogs.historical, excluded, catalogs.products)
        config = VendorConfig(
            name="x", header_fields=(), detail_fields=(), exclude_by_catalog=True
        )
        document = document_for(
            config,
            rows=[
                {F.ITEM_DESCRIPCION_PRODUCTO: ("bolsa plastica", 0.9)},
                {F.ITEM_DESCRIPCION_PRODUCTO: ("BOLSA PLASTIC", 0.9)},
            ],
            catalogs=ports,
        )

        await document.exclude()

        assert [p[F.ITEM_DESCRIPCION_PRODUCTO].text for p in document.products()] == [
            "BOLSA PLASTIC"
        ]

    def test_prune(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should remove pruned field types."""
        config = VendorConfig(
            name="x",
            header_fields=(),
            detail_fields=(),
            pruned_header_fields=(F.RAZON_SOCIAL,),
            pruned_detail_fields=(F.VALOR_VENTA_ITEM,),
        )
        document = document_for(
            config,
            rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.9), F.VALOR_VENTA_ITEM: ("1", 0.9)}],
        )

        document.prune()

        assert F.RAZON_SOCIAL not in document.header()
        assert {f.field_type for f in document.data.detalles} == {F.ITEM_DESCRIPCION_PRODUCTO}


class TestProcessAndFormat:
    """Test the full pipeline contract."""

    def test_format_before_process(self, document_for: Callable[..., InvoiceDocument]) -> None:
        """Should refuse to format an unprocessed document."""
        with pytest.raises(FormatNotReadyError):
            document_for().format()

    @pytest.mark.asyncio
    async def test_process_then_format(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should process every stage and format canonical rows."""
        document = document_for(
            rows=[{F.ITEM_DESCRIPCION_PRODUCTO: ("AGUA", 0.9), F.VALOR_VENTA_ITEM: ("10", 0.9)}]
        )

        assert await document.process() is document
        rows = document.format()

        assert document.processed is True
        assert len(rows) == 1
        assert rows[0].invoice_number == "61443"
        assert rows[0].invoice_date == "2026-10-01"
        assert rows[0].business_name == "COCA COLA"

    @pytest.mark.asyncio
    async def test_invalid_document_still_processed(
        self, document_for: Callable[..., InvoiceDocument]
    ) -> None:
        """Should run every stage even when the date invalidates the invoice."""
        document = document_for(header=_header("bad"))

        await document.process()
        result = document.get()

        assert result.is_valid is False
        assert result.errors == {"fecha_factura": ERROR_DATE_FORMAT}
        assert document.header()[F.NUMERO_FACTURA].text == "61443"


def test_negate_text_is_idempotent() -> None:
    """Test that negating a sale value twice keeps it negative."""
    field = OCRField(field_type=F.VALOR_VENTA_ITEM, text="1500", confidence=1.0)

    negate_text(field)
    negate_text(field)

    assert field.text == "-1500"


@pytest.mark.parametrize(
    ("text", "expected"),
    [("12.888,4", "-12.888,4"), ("0,0", "0,0"), ("-12888.4", "-12888.4"), ("", "")],
)
def test_negate_text_reads_colombian_amounts(text: str, expected: str) -> None:
    """Test that amounts printed with decimal commas are negated once."""
    field = OCRField(field_type=F.VALOR_VENTA_ITEM, text=text, confidence=1.0)

    negate_text(field)

    assert field.text == expected
