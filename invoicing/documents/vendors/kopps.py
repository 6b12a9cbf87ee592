"""Kopps invoices.

Kopps prints gross line values; the sale value is rebuilt from packs, unit
price, discount, ICO and VAT:

    gross = packs * unit price
    sale = gross - discount + ICO + (gross - discount) * VAT% / 100

Rows whose description is found in the product master are rewritten with the
master's description, code and packaging.
"""

import logging

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    add_missing_detail_fields,
    infer_packaging_type,
    upgrade_all,
)
from invoicing.documents.catalog import Product as CatalogProduct
from invoicing.documents.fields import FieldName as F
from invoicing.documents.fields import OCRField
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import fix_number_fields, fix_year, to_number

logger = logging.getLogger(__name__)

KOPPS_COMPANY_ID = 1

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.TOTAL_FACTURA_SIN_IVA,
    F.VALOR_TOTAL_FACTURA,
    F.RAZON_SOCIAL,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.VALOR_UNITARIO_ITEM,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.UNIDADES_EMBALAJE,
    F.PACKS_VENDIDOS,
    F.TIPO_EMBALAJE,
    F.PRECIO_BRUTO_ITEM,
    F.VALOR_VENTA_ITEM,
    F.TOTAL_ICO,
    F.VALOR_IVA,
    F.DESCUENTO,
)

KOPPS_THRESHOLDS = {
    F.FECHA_FACTURA: 0.95,
    F.VALOR_TOTAL_FACTURA: 0.93,
    F.RAZON_SOCIAL: 0.99,
    F.NUMERO_FACTURA: 0.89,
    F.TOTAL_FACTURA_SIN_IVA: 0.93,
    F.CODIGO_PRODUCTO: 0.82,
    F.VALOR_UNITARIO_ITEM: 0.91,
    F.ITEM_DESCRIPCION_PRODUCTO: 0.88,
    F.PACKS_VENDIDOS: 0.95,
    F.TIPO_EMBALAJE: 0.94,
    F.PRECIO_BRUTO_ITEM: 0.92,
    F.VALOR_VENTA_ITEM: 0.90,
    F.UNIDADES_EMBALAJE: 0.87,
    F.VALOR_IVA: 0.93,
    F.TOTAL_ICO: 0.89,
    F.DESCUENTO: 0.86,
}


def normalize_fields(document: InvoiceDocument) -> None:
    fix_number_fields(
        document.data.detalles,
        (F.VALOR_VENTA_ITEM, F.PACKS_VENDIDOS, F.VALOR_UNITARIO_ITEM),
    )
    fix_number_fields(
        document.data.encabezado,
        (F.TOTAL_FACTURA_SIN_IVA, F.VALOR_TOTAL_FACTURA),
    )


def gross_value(product: Product) -> float:
    return to_number(product.get(F.PACKS_VENDIDOS)) * to_number(
        product.get(F.VALOR_UNITARIO_ITEM)
    )


def expected_sale(product: Product) -> float:
    net = gross_value(product) - to_number(product.get(F.DESCUENTO))
    vat = net * to_number(product.get(F.VALOR_IVA)) / 100
    return net + to_number(product.get(F.TOTAL_ICO)) + vat


async def infer_total(document: InvoiceDocument) -> None:
    total = document.header().get(F.VALOR_TOTAL_FACTURA)
    if total is None:
        return
    products = document.products(include_reductions=True)
    calculated = sum(to_number(p.get(F.VALOR_VENTA_ITEM)) for p in products)
    if document.matches(calculated, to_number(total)):
        total.upgrade()
        upgrade_all(p.get(F.VALOR_VENTA_ITEM) for p in products)


async def infer_subtotal(document: InvoiceDocument) -> None:
    subtotal = document.header().get(F.TOTAL_FACTURA_SIN_IVA)
    if subtotal is None:
        return
    products = document.products(include_reductions=True)
    calculated = sum(gross_value(p) for p in products)
    if document.matches(calculated, to_number(subtotal)):
        subtotal.upgrade()
        for product in products:
            upgrade_all((product.get(F.PACKS_VENDIDOS), product.get(F.VALOR_UNITARIO_ITEM)))


def _catalog_text(value: str | float | None) -> str | None:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _overwrite(field: OCRField | None, value: str | float | None) -> None:
    if field is None:
        return
    text = _catalog_text(value)
    if text:
        field.text = text
    field.upgrade()


def fill_from_master(product: Product, known: CatalogProduct) -> None:
    """Replace the row's identifying columns with the product master's values."""
    _overwrite(product.get(F.ITEM_DESCRIPCION_PRODUCTO), known.description)
    _overwrite(product.get(F.CODIGO_PRODUCTO), known.product_code)
    _overwrite(product.get(F.UNIDADES_EMBALAJE), known.packaging_unit)
    _overwrite(product.get(F.TIPO_EMBALAJE), known.packaging_type)


async def lookup_product(document: InvoiceDocument, product: Product) -> CatalogProduct | None:
    """Fuzzy description lookup, falling back to the printed product code."""
    products = document.catalogs.products
    description = product.get(F.ITEM_DESCRIPCION_PRODUCTO)
    known = await products.find_product_by_fuzzy_description(
        (description.text if description else None) or "", document.company_id
    )
    code = product.get(F.CODIGO_PRODUCTO)
    if known is None and code is not None and code.text:
        known = await products.find_product_by_code(code.text, document.company_id)
    return known


def check_sale_value(document: InvoiceDocument, product: Product) -> None:
    expected = expected_sale(product)
    sale = product.get(F.VALOR_VENTA_ITEM)
    observed = to_number(sale)
    if document.matches(expected, observed):
        upgrade_all((sale, product.get(F.DESCUENTO), product.get(F.PACKS_VENDIDOS)))
    elif sale is not None:
        sale.error = f"Valor venta no coincide. Esperado {expected:.2f}, Calculado : {observed}"


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        infer_packaging_type(product.get(F.TIPO_EMBALAJE))

        known = await lookup_product(document, product)
        if known is not None:
            fill_from_master(product, known)
        else:
            description = product.get(F.ITEM_DESCRIPCION_PRODUCTO)
            logger.info(
                f"Product not in master for company {document.company_id}: "
                f"{description.text if description else None!r}"
            )

        check_sale_value(document, product)


KOPPS = VendorConfig(
    name="kopps",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(units_sold=None),
    normalize=(add_missing_detail_fields, normalize_fields),
    inference=(infer_total, infer_subtotal, infer_products),
    date_repair=fix_year,
    exclude_by_catalog=True,
    exclusion_exact_recheck=False,
    company_id=KOPPS_COMPANY_ID,
    pruned_detail_fields=(
        F.PRECIO_BRUTO_ITEM,
        F.VALOR_UNITARIO_ITEM,
        F.TOTAL_ICO,
        F.VALOR_IVA,
    ),
    thresholds=KOPPS_THRESHOLDS,
)
