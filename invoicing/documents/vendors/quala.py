"""Quala invoices.

Quala lines carry VAT, ICO, ICUI and IBUA taxes:

    base = unit price * units sold
    sale = base + base * VAT% + ICO + base * ICUI% + IBUA

Rows with no ICUI rate, no IBUA and no sale value are blank filler lines
printed between product groups.
"""

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    add_missing_detail_fields,
    corroborate_with_catalog,
    flag_all,
    upgrade_all,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import fix_number_fields, to_number

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.RAZON_SOCIAL,
    F.VALOR_TOTAL_FACTURA,
    F.TOTAL_FACTURA_SIN_IVA,
    F.TOTAL_PRODUCTOS_FILTRADOS,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.UNIDADES_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_VENTA_ITEM,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_IVA,
    F.TOTAL_ICO,
    F.PORCENTAJE_ICUI,
    F.TOTAL_IBUA,
)

EXCLUDED_KEYWORDS = (
    "CUATES",
    "QUIPITOS",
    "LIKE",
    "SUNTEA",
    "DN POLLO",
    "INSTACREM",
    "RC DESME",
    "POP MPX6 CAR 10X6X44 PRV",
    "SOPERA CRE",
    "FAM 6 UN NAL",
    "NUTR REPINT15",
)

BLANK_ROW_FIELDS = (F.PORCENTAJE_ICUI, F.TOTAL_IBUA, F.VALOR_VENTA_ITEM)

_ZERO = 0.0001


def normalize_fields(document: InvoiceDocument) -> None:
    fix_number_fields(
        document.data.detalles,
        (F.VALOR_VENTA_ITEM, F.UNIDADES_VENDIDAS, F.VALOR_UNITARIO_ITEM),
    )


def is_blank_row(product: Product) -> bool:
    return all(
        not ((field := product.get(field_type)) and (field.text or "").strip())
        for field_type in BLANK_ROW_FIELDS
    )


def base_value(product: Product) -> float:
    return to_number(product.get(F.VALOR_UNITARIO_ITEM)) * to_number(
        product.get(F.UNIDADES_VENDIDAS)
    )


def expected_sale(product: Product) -> float:
    base = base_value(product)
    return (
        base
        + base * (to_number(product.get(F.VALOR_IVA)) / 100)
        + to_number(product.get(F.TOTAL_ICO))
        + base * (to_number(product.get(F.PORCENTAJE_ICUI)) / 100)
        + to_number(product.get(F.TOTAL_IBUA))
    )


def check_sale_value(document: InvoiceDocument, product: Product) -> None:
    amounts = (
        to_number(product.get(F.VALOR_UNITARIO_ITEM)),
        to_number(product.get(F.UNIDADES_VENDIDAS)),
        to_number(product.get(F.VALOR_IVA)),
        to_number(product.get(F.TOTAL_ICO)),
        to_number(product.get(F.VALOR_VENTA_ITEM)),
    )
    if all(abs(amount) <= _ZERO for amount in amounts):
        return

    expected = expected_sale(product)
    observed = to_number(product.get(F.VALOR_VENTA_ITEM))
    checked = (product.get(F.UNIDADES_VENDIDAS), product.get(F.VALOR_VENTA_ITEM))
    if document.matches(expected, observed):
        upgrade_all(checked)
    else:
        flag_all(
            checked,
            f"Product total calculation do not match: Calculated: {expected}. "
            f"Expected : {observed}",
        )


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        if is_blank_row(product):
            upgrade_all(product.get(field_type) for field_type in BLANK_ROW_FIELDS)
            continue
        await corroborate_with_catalog(document, product)
        check_sale_value(document, product)


async def infer_totals(document: InvoiceDocument) -> None:
    header = document.header()
    products = document.products(include_reductions=True)

    total = header.get(F.VALOR_TOTAL_FACTURA)
    if total is not None:
        calculated = sum(expected_sale(p) for p in products)
        expected = to_number(total)
        if document.matches(calculated, expected):
            total.upgrade()
            for product in products:
                upgrade_all((product.get(F.VALOR_UNITARIO_ITEM), product.get(F.UNIDADES_VENDIDAS)))
        else:
            total.error = (
                f"Total calculation do not match: Calculated: {calculated}. Expected : {expected}"
            )

    subtotal = header.get(F.TOTAL_FACTURA_SIN_IVA)
    if subtotal is not None:
        calculated = sum(base_value(p) for p in products)
        expected = to_number(subtotal)
        if document.matches(calculated, expected):
            subtotal.upgrade()
        else:
            subtotal.error = (
                f"Total calculation do not match: Calculated: {calculated}. Expected : {expected}"
            )


QUALA = VendorConfig(
    name="quala",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(packaging_type=None, packs_sold=None),
    normalize=(add_missing_detail_fields, normalize_fields),
    inference=(infer_products, infer_totals),
    exclude_by_catalog=True,
    keyword_denylist=EXCLUDED_KEYWORDS,
    pruned_header_fields=(F.TOTAL_PRODUCTOS_FILTRADOS,),
    pruned_detail_fields=(
        F.TOTAL_ICO,
        F.PORCENTAJE_ICUI,
        F.TOTAL_IBUA,
        F.VALOR_IVA,
        F.VALOR_UNITARIO_ITEM,
        F.ES_DEVOLUCION,
    ),
)
