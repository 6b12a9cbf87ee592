"""Tolima invoices.

Tolima prints either a box count or, when no whole box was sold (``cajas`` is
zero), a package size and a unit count. The sale value is:

    boxes > 0:  unit price * boxes - discount
    boxes == 0: unit price / (package units / units sold) - discount
"""

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    corroborate_with_catalog,
    flag_all,
    upgrade_all,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import to_number

HEADER_FIELDS = (F.FECHA_FACTURA, F.NUMERO_FACTURA, F.RAZON_SOCIAL, F.VALOR_TOTAL_FACTURA)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.CAJAS,
    F.UNIDADES,
    F.DESCUENTO,
    F.UNIDADES_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_VENTA_ITEM,
)


def expected_sale(product: Product) -> float | None:
    """Sale value implied by the row, or None when it divides by zero."""
    unit_price = to_number(product.get(F.VALOR_UNITARIO_ITEM))
    discount = to_number(product.get(F.DESCUENTO))
    boxes = to_number(product.get(F.CAJAS))
    if boxes:
        return unit_price * boxes - discount

    try:
        quantity = to_number(product.get(F.UNIDADES_EMBALAJE)) / to_number(
            product.get(F.UNIDADES_VENDIDAS)
        )
        return unit_price / quantity - discount
    except ZeroDivisionError:
        return None


def check_sale_value(document: InvoiceDocument, product: Product) -> None:
    sale = product.get(F.VALOR_VENTA_ITEM)
    checked = (sale, product.get(F.UNIDADES_VENDIDAS))
    expected = expected_sale(product)
    if document.matches(expected, to_number(sale)):
        upgrade_all(checked)
    else:
        flag_all(
            checked,
            f"Cálculo producto no coincide: Expected {sale.text if sale else None}. "
            f"Calculated: {expected}",
        )


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        await corroborate_with_catalog(document, product)
        check_sale_value(document, product)


async def infer_total(document: InvoiceDocument) -> None:
    total = document.header().get(F.VALOR_TOTAL_FACTURA)
    if total is None:
        return
    products = document.products(include_reductions=True)
    calculated = sum(to_number(p.get(F.VALOR_VENTA_ITEM)) for p in products)
    if document.matches(calculated, to_number(total)):
        total.upgrade()
        upgrade_all(p.get(F.VALOR_VENTA_ITEM) for p in products)
    else:
        total.error = (
            f"Valor total factura no coincide : Expected: {total.text}. Calculated : {calculated}"
        )


TOLIMA = VendorConfig(
    name="tolima",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(packaging_type=None, packs_sold=None, total_invoice_without_vat=None),
    inference=(infer_products, infer_total),
    exclude_by_catalog=True,
    pruned_detail_fields=(
        F.CAJAS,
        F.UNIDADES,
        F.DESCUENTO,
        F.UNIDADES_EMBALAJE,
        F.VALOR_UNITARIO_ITEM,
    ),
)
