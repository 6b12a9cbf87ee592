"""Coca-Cola bottler layouts and the unit-price check shared by its family.

A Coke line prints the package size, the units sold, the package price and the
IBUA tax; the sale value must equal the price of the units sold minus IBUA.
"""

import dataclasses

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    corroborate_with_catalog,
    flag_all,
    infer_packaging_type,
    is_reduction,
    negate_text,
    upgrade_all,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import is_illegible, to_number

HEADER_FIELDS = (F.FECHA_FACTURA, F.NUMERO_FACTURA, F.RAZON_SOCIAL, F.VALOR_TOTAL_FACTURA)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_VENTA_ITEM,
    F.VALOR_IBUA_Y_OTROS,
    F.UNIDADES_EMBALAJE,
    F.VALOR_UNITARIO_ITEM,
)

COKE_THRESHOLDS = {
    F.FECHA_FACTURA: 0.96,
    F.NUMERO_FACTURA: 0.94,
    F.RAZON_SOCIAL: 0.99,
    F.VALOR_TOTAL_FACTURA: 0.93,
    F.CODIGO_PRODUCTO: 0.46,
    F.ITEM_DESCRIPCION_PRODUCTO: 0.8,
    F.TIPO_EMBALAJE: 0.44,
    F.UNIDADES_VENDIDAS: 0.41,
    F.VALOR_VENTA_ITEM: 0.87,
    F.VALOR_IBUA_Y_OTROS: 0.43,
    F.UNIDADES_EMBALAJE: 0.45,
}

# Order matters: package units, units sold, unit price, IBUA, sale value
UNIT_PRICE_INPUTS = (
    F.UNIDADES_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_IBUA_Y_OTROS,
    F.VALOR_VENTA_ITEM,
)

ERROR_MISSING_INPUTS = "Missing fields for calculation inference"


def expected_sale(
    package_units: float, units_sold: float, unit_price: float, ibua: float
) -> float | None:
    """Sale value implied by a Coke line, None when a quantity is zero.

    ``units_per_item = package_units / units_sold``,
    ``unit_value = unit_price / units_per_item``,
    ``expected = unit_value - ibua``.
    """
    try:
        units_per_item = package_units / units_sold
        return unit_price / units_per_item - ibua
    except ZeroDivisionError:
        return None


def check_unit_price(document: InvoiceDocument, product: Product, *, strict: bool = True) -> None:
    """Corroborate a product line with the unit-price formula.

    Args:
        document: Document being inferred
        product: Product fields of one row
        strict: Flag lines that lack formula inputs. Lenient vendors skip
            lines without the printed quantities instead.
    """
    inputs = [product.get(field_type) for field_type in UNIT_PRICE_INPUTS]
    package_units, units_sold, unit_price, ibua, sale = inputs

    if any(field is None for field in inputs):
        if strict and sale is not None:
            sale.error = ERROR_MISSING_INPUTS
        return
    if not strict and any(
        is_illegible(field.text) for field in (package_units, units_sold, unit_price, sale)
    ):
        return

    expected = expected_sale(
        to_number(package_units), to_number(units_sold), to_number(unit_price), to_number(ibua)
    )
    observed = to_number(sale)
    if document.matches(expected, observed):
        upgrade_all(inputs)
    else:
        flag_all(
            inputs,
            f"Product total calculation do not match: Calculated: {expected}, "
            f"Expected : {observed}",
        )


def normalize_reduction_rows(document: InvoiceDocument) -> None:
    """Credit rows: upper-case description, no IBUA, negative sale value."""
    for product in document.products(include_reductions=True):
        if not is_reduction(product):
            continue
        description = product[F.ITEM_DESCRIPCION_PRODUCTO]
        description.text = (description.text or "").strip().upper()
        ibua = product.get(F.VALOR_IBUA_Y_OTROS)
        if ibua is not None:
            ibua.text = ""
        negate_text(product.get(F.VALOR_VENTA_ITEM))


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        result = await corroborate_with_catalog(document, product)

        if result is not None:
            unit_price = product.get(F.VALOR_UNITARIO_ITEM)
            if (
                unit_price is not None
                and result.sale_value is not None
                and not is_illegible(unit_price.text)
                and to_number(unit_price) == result.sale_value
            ):
                unit_price.upgrade()
            ibua = product.get(F.VALOR_IBUA_Y_OTROS)
            if (
                ibua is not None
                and result.value_ibua_and_others is not None
                and not is_illegible(ibua.text)
                and to_number(ibua) == result.value_ibua_and_others
            ):
                ibua.upgrade()

        infer_packaging_type(product.get(F.TIPO_EMBALAJE))
        check_unit_price(document, product, strict=True)


async def infer_total(document: InvoiceDocument) -> None:
    """Header total must equal the sum of sale values plus IBUA."""
    total_field = document.header().get(F.VALOR_TOTAL_FACTURA)
    if total_field is None:
        return

    calculated = sum(
        to_number(product.get(F.VALOR_VENTA_ITEM)) + to_number(product.get(F.VALOR_IBUA_Y_OTROS))
        for product in document.products(include_reductions=True)
    )
    expected = to_number(total_field)
    if document.matches(calculated, expected):
        total_field.upgrade()
    else:
        total_field.error = (
            f"Total factura no coincide. Calculado: {calculated}, Esperado: {expected}"
        )


COKE = VendorConfig(
    name="coke",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(
        packs_sold=F.UNIDADES_EMBALAJE,
        total_invoice_without_vat=None,
        ibua=F.VALOR_IBUA_Y_OTROS,
        ibua_default=0,
    ),
    normalize=(normalize_reduction_rows,),
    inference=(infer_products, infer_total),
    exclude_by_catalog=True,
    pruned_detail_fields=(F.VALOR_UNITARIO_ITEM,),
    thresholds=COKE_THRESHOLDS,
)

# Delivery notes from the bottler share the invoice layout
ENTREGA_COKE = dataclasses.replace(COKE, name="entrega_coke")
