"""Canonical row formatting and sentinel policy.

Every vendor maps its fields onto the same ``CanonicalResultRow`` shape.
Illegible values (empty text or the ``[ILEGIBLE]`` literal) become sentinels
so consumers can tell "known absent" apart from zero.
"""

from collections.abc import Mapping
from dataclasses import dataclass

from invoicing.documents.constants import (
    NULL_DATE,
    NULL_FLOAT,
    NULL_IBUA,
    NULL_NUMBER,
    NULL_STRING,
)
from invoicing.documents.fields import CanonicalResultRow, InvoicePayload, OCRField
from invoicing.documents.heuristics import (
    group_by_row,
    is_illegible,
    parse_number,
    to_field_map,
    to_iso_date,
    to_number,
)

_PACK_WITH_UNITS_SEPARATOR = "/"


def _text(field: OCRField | None) -> str | None:
    return field.text if field is not None else None


def text_or_null(field: OCRField | None) -> str:
    text = _text(field)
    return NULL_STRING if is_illegible(text) else text


def number_or_null(field: OCRField | None, sentinel: int | float = NULL_NUMBER) -> int | float:
    number = parse_number(_text(field))
    return sentinel if number is None else number


def float_or_null(field: OCRField | None) -> int | float:
    return number_or_null(field, NULL_FLOAT)


def ibua_or_null(field: OCRField | None, sentinel: int | float = NULL_IBUA) -> int | float:
    return number_or_null(field, sentinel)


def date_or_null(field: OCRField | None) -> str:
    """ISO date for ``dd/mm/yyyy`` text, ``1900-01-01`` when illegible or malformed."""
    text = _text(field)
    if is_illegible(text):
        return NULL_DATE
    return to_iso_date(text) or NULL_DATE


def parse_pack_with_units(field: OCRField | None) -> tuple[int | float, int | float]:
    """Split a ``packs/units`` cell into (packs sold, units sold).

    Malformed or illegible cells give the float sentinel for both values.
    """
    text = _text(field)
    if is_illegible(text) or text.count(_PACK_WITH_UNITS_SEPARATOR) != 1:
        return NULL_FLOAT, NULL_FLOAT
    packs, units = (part.strip() for part in text.split(_PACK_WITH_UNITS_SEPARATOR))
    if not packs.isdigit() or not units.isdigit():
        return NULL_FLOAT, NULL_FLOAT
    return to_number(packs), to_number(units)


@dataclass(frozen=True)
class RowLayout:
    """Where each canonical column comes from for one vendor.

    Attribute values are field types; None means the vendor never prints the
    column and the sentinel is always used.
    """

    business_name: str | None = "razon_social"
    invoice_date: str | None = "fecha_factura"
    invoice_number: str | None = "numero_factura"
    total_invoice: str | None = "valor_total_factura"
    total_invoice_without_vat: str | None = "total_factura_sin_iva"
    description: str | None = "item_descripcion_producto"
    packaging_type: str | None = "tipo_embalaje"
    packaging_unit: str | None = "unidades_embalaje"
    packs_sold: str | None = "packs_vendidos"
    units_sold: str | None = "unidades_vendidas"
    product_code: str | None = "codigo_producto"
    sale_value: str | None = "valor_venta_item"
    ibua: str | None = None
    # Used when ``ibua`` is None or illegible
    ibua_default: int | float = NULL_IBUA
    # Cell holding "packs/units"; overrides packs_sold and units_sold
    pack_with_units: str | None = None


def _pick(fields: Mapping[str, OCRField], field_type: str | None) -> OCRField | None:
    return fields.get(field_type) if field_type else None


def build_rows(payload: InvoicePayload, layout: RowLayout) -> list[CanonicalResultRow]:
    """Build one canonical row per product of a processed payload.

    Args:
        payload: Invoice data after the validation pipeline
        layout: Vendor column mapping

    Returns:
        Rows numbered 1..n in product order
    """
    header = to_field_map(payload.encabezado)
    rows: list[CanonicalResultRow] = []

    for index, group in enumerate(group_by_row(payload.detalles), start=1):
        product = to_field_map(group)

        if layout.pack_with_units:
            packs_sold, units_sold = parse_pack_with_units(product.get(layout.pack_with_units))
        else:
            packs_sold = float_or_null(_pick(product, layout.packs_sold))
            units_sold = float_or_null(_pick(product, layout.units_sold))

        rows.append(
            CanonicalResultRow(
                invoice_id=payload.factura_id,
                row_number=index,
                survey_record_id=payload.survey_record_id,
                business_name=text_or_null(_pick(header, layout.business_name)),
                description=text_or_null(_pick(product, layout.description)),
                invoice_date=date_or_null(_pick(header, layout.invoice_date)),
                invoice_number=text_or_null(_pick(header, layout.invoice_number)),
                packaging_type=text_or_null(_pick(product, layout.packaging_type)),
                packaging_unit=float_or_null(_pick(product, layout.packaging_unit)),
                packs_sold=packs_sold,
                units_sold=units_sold,
                product_code=text_or_null(_pick(product, layout.product_code)),
                sale_value=number_or_null(_pick(product, layout.sale_value)),
                total_invoice=number_or_null(_pick(header, layout.total_invoice)),
                total_invoice_without_vat=number_or_null(
                    _pick(header, layout.total_invoice_without_vat)
                ),
                value_ibua_and_others=ibua_or_null(
                    _pick(product, layout.ibua), layout.ibua_default
                ),
            )
        )

    return rows
