"""Postobon layouts: invoices, POS tickets and delivery notes.

Postobon sells boxed products (``CAJA``) by the pack and everything else by
the unit, so the packaging type decides which quantity column feeds the sale
value check:

    base = quantity * unit price
    sale = (base - discount) * (1 + VAT rate / 100)
"""

import dataclasses

from invoicing.documents.base import (
    BusinessNamePolicy,
    InvoiceDocument,
    Product,
    VendorConfig,
    corroborate_with_catalog,
    flag_all,
    upgrade_all,
)
from invoicing.documents.catalog import HistoricalResult
from invoicing.documents.constants import EMBALAJES, EMBALAJES_CAJA
from invoicing.documents.fields import FieldName as F
from invoicing.documents.fields import OCRField
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import group_by_row, is_illegible, repair_date, to_number

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.VALOR_TOTAL_FACTURA,
    F.TOTAL_FACTURA_SIN_IVA,
    F.RAZON_SOCIAL,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.UNIDADES_EMBALAJE,
    F.PACKS_VENDIDOS,
    F.VALOR_VENTA_ITEM,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_TOTAL_UNITARIO_ITEM,
    F.VALOR_DESCUENTO_ITEM,
    F.APLICA_IVA_ITEM,
)

TIQUETE_HEADER_FIELDS = HEADER_FIELDS + (F.TOTAL_ARTICULOS,)

TIQUETE_DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.UNIDADES_EMBALAJE,
    F.PACKS_VENDIDOS,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_VENTA_ITEM,
    F.VALOR_DESCUENTO_ITEM,
    F.APLICA_IVA_ITEM,
    F.ES_DEVOLUCION,
)

ENTREGA_HEADER_FIELDS = (F.FECHA_FACTURA, F.RAZON_SOCIAL, F.VALOR_TOTAL_FACTURA)

ENTREGA_DETAIL_FIELDS = (
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.UNIDADES_EMBALAJE,
    F.PACKS_VENDIDOS,
    F.VALOR_VENTA_ITEM,
)

ENTREGA_THRESHOLDS = {
    F.FECHA_FACTURA: 0.9,
    F.VALOR_TOTAL_FACTURA: 0.95,
    F.RAZON_SOCIAL: 0.95,
    F.ITEM_DESCRIPCION_PRODUCTO: 0.9,
    F.VALOR_VENTA_ITEM: 0.95,
    F.PACKS_VENDIDOS: 0.9,
    F.UNIDADES_EMBALAJE: 0.9,
}

ERROR_SALE_VALUE = "Valor de venta no concuerda con el cálculo"
ERROR_TOTAL_WITHOUT_VAT = "Total factura sin IVA no concuerda con la suma de los productos"


def sold_by_pack(product: Product) -> bool:
    packaging = product.get(F.TIPO_EMBALAJE)
    return ((packaging.text if packaging else None) or "").strip().upper() in EMBALAJES_CAJA


def base_value(product: Product) -> float:
    """Quantity times unit price, before discount and VAT."""
    quantity = product.get(F.PACKS_VENDIDOS if sold_by_pack(product) else F.UNIDADES_VENDIDAS)
    return to_number(quantity) * to_number(product.get(F.VALOR_UNITARIO_ITEM))


def expected_sale(product: Product) -> float:
    after_discount = base_value(product) - to_number(product.get(F.VALOR_DESCUENTO_ITEM))
    vat = after_discount * (to_number(product.get(F.APLICA_IVA_ITEM)) / 100)
    return after_discount + vat


def infer_quantity_columns(product: Product) -> None:
    """Trust a known packaging type and blank the quantity column it does not use.

    Unknown packaging text leaves both quantity columns as read.
    """
    packaging = product.get(F.TIPO_EMBALAJE)
    if packaging is None or (packaging.text or "").strip().upper() not in EMBALAJES:
        return
    packaging.upgrade()

    units = product.get(F.UNIDADES_VENDIDAS)
    packs = product.get(F.PACKS_VENDIDOS)
    used, unused = (packs, units) if sold_by_pack(product) else (units, packs)
    if unused is not None:
        unused.text = None
        unused.upgrade()
    if used is not None:
        used.upgrade()


def check_sale_value(document: InvoiceDocument, product: Product, *, flag: bool) -> None:
    inputs = [
        product.get(F.PACKS_VENDIDOS),
        product.get(F.UNIDADES_VENDIDAS),
        product.get(F.VALOR_UNITARIO_ITEM),
        product.get(F.VALOR_VENTA_ITEM),
        product.get(F.TIPO_EMBALAJE),
        product.get(F.VALOR_DESCUENTO_ITEM),
        product.get(F.APLICA_IVA_ITEM),
    ]
    if document.matches(expected_sale(product), to_number(product.get(F.VALOR_VENTA_ITEM))):
        upgrade_all(inputs)
    elif flag:
        flag_all(inputs, ERROR_SALE_VALUE)


def check_total_without_vat(document: InvoiceDocument, *, flag: bool) -> None:
    """Header subtotal must equal the sum of every row's base value."""
    subtotal = document.header().get(F.TOTAL_FACTURA_SIN_IVA)
    if subtotal is None:
        return
    calculated = sum(base_value(p) for p in document.products(include_reductions=True))
    if document.matches(calculated, to_number(subtotal)):
        subtotal.upgrade()
    elif flag:
        subtotal.error = ERROR_TOTAL_WITHOUT_VAT


def _matches_catalog(field: OCRField | None, expected: float | None) -> bool:
    return (
        field is not None
        and expected is not None
        and not is_illegible(field.text)
        and to_number(field) == expected
    )


def apply_catalog_result(product: Product, result: HistoricalResult | None) -> None:
    """Upgrade the row columns that agree with a historical result."""
    if result is None:
        return
    packaging = product.get(F.TIPO_EMBALAJE)
    if packaging is not None and packaging.text and packaging.text == result.packaging_type:
        packaging.upgrade()
    for field_type, expected in (
        (F.UNIDADES_EMBALAJE, result.packaging_unit),
        (F.PACKS_VENDIDOS, result.packs_sold),
        (F.VALOR_VENTA_ITEM, result.sale_value),
    ):
        field = product.get(field_type)
        if _matches_catalog(field, expected):
            field.upgrade()


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        apply_catalog_result(product, await corroborate_with_catalog(document, product))
        infer_quantity_columns(product)
        check_sale_value(document, product, flag=True)


async def infer_totals(document: InvoiceDocument) -> None:
    check_total_without_vat(document, flag=True)

    total = document.header().get(F.VALOR_TOTAL_FACTURA)
    if total is None:
        return
    products = document.products(include_reductions=True)
    calculated = sum(to_number(p.get(F.VALOR_VENTA_ITEM)) for p in products)
    if document.matches(calculated, to_number(total)):
        total.upgrade()
        upgrade_all(p.get(F.VALOR_VENTA_ITEM) for p in products)


# -- POS tickets ---------------------------------------------------------------


def add_return_flag(document: InvoiceDocument) -> None:
    """Every ticket row carries ``es_devolucion``; rows without it are sales."""
    for group in group_by_row(document.data.detalles):
        if any(field.field_type == F.ES_DEVOLUCION for field in group):
            continue
        document.data.detalles.append(
            OCRField(field_type=F.ES_DEVOLUCION, text="0", confidence=1.0, row=group[0].row)
        )


async def infer_ticket_products(document: InvoiceDocument) -> None:
    for product in document.products():
        result = await corroborate_with_catalog(document, product, try_trimmed=False)
        apply_catalog_result(product, result)
        infer_quantity_columns(product)
        check_sale_value(document, product, flag=False)
    check_total_without_vat(document, flag=False)


async def adjust_to_risk(document: InvoiceDocument) -> None:
    """Accept a fairly confident ticket subtotal when nothing else is wrong."""
    if document.errors:
        return
    subtotal = document.header().get(F.TOTAL_FACTURA_SIN_IVA)
    if subtotal is not None and subtotal.confidence >= document.settings.risk_adjustment_threshold:
        subtotal.upgrade()


POSTOBON = VendorConfig(
    name="postobon",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(ibua_default=0),
    inference=(infer_products, infer_totals),
    business_name=BusinessNamePolicy.TRUSTED,
    exclude_by_catalog=True,
    pruned_detail_fields=(
        F.VALOR_UNITARIO_ITEM,
        F.VALOR_TOTAL_UNITARIO_ITEM,
        F.VALOR_DESCUENTO_ITEM,
        F.APLICA_IVA_ITEM,
    ),
)

TIQUETE_POS = dataclasses.replace(
    POSTOBON,
    name="tiquete_pos_postobon",
    header_fields=TIQUETE_HEADER_FIELDS,
    detail_fields=TIQUETE_DETAIL_FIELDS,
    normalize=(add_return_flag,),
    inference=(infer_ticket_products,),
    adjustments=(adjust_to_risk,),
    obsolescence_months=3,
    date_repair=repair_date,
    pruned_header_fields=(F.TOTAL_ARTICULOS,),
    pruned_detail_fields=(
        F.VALOR_UNITARIO_ITEM,
        F.VALOR_DESCUENTO_ITEM,
        F.APLICA_IVA_ITEM,
        F.TOTAL_ARTICULOS,
        F.VALOR_DESCUENTO,
        F.VALOR_SUBTOTAL_ITEM,
    ),
)

ENTREGA_POSTOBON = VendorConfig(
    name="entrega_postobon",
    header_fields=ENTREGA_HEADER_FIELDS,
    detail_fields=ENTREGA_DETAIL_FIELDS,
    layout=RowLayout(
        invoice_number=None,
        packaging_type=None,
        units_sold=None,
        product_code=None,
        total_invoice_without_vat=None,
    ),
    validate_date=False,
    infer_date=False,
    infer_invoice_number=False,
    business_name=BusinessNamePolicy.NONE,
    thresholds=ENTREGA_THRESHOLDS,
)
