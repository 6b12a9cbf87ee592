"""Infocargue (distributor upload) invoices.

Infocargue sheets print packs and units in a single ``packs/units`` cell and
rarely print the package size, which is read from the description instead
("AGUA X24" -> 24).
"""

import re

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    add_missing_detail_fields,
    corroborate_with_catalog,
    negate_reduction_sales,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import fix_number_fields, fix_year, to_number
from invoicing.documents.vendors.coke import check_unit_price

HEADER_FIELDS = (F.FECHA_FACTURA, F.NUMERO_FACTURA, F.RAZON_SOCIAL, F.VALOR_TOTAL_FACTURA)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_VENTA_ITEM,
    F.VALOR_IBUA_Y_OTROS,
    F.UNIDADES_EMBALAJE,
    F.PACKS_CON_UNIDADES,
)

_PACKS_WITH_UNITS = re.compile(r"[0-9]+/[0-9]+")
_PACKAGE_SIZE = re.compile(r".*[xX]\s*([0-9]+)")


def normalize_fields(document: InvoiceDocument) -> None:
    fix_number_fields(document.data.detalles, (F.VALOR_VENTA_ITEM, F.PACKS_CON_UNIDADES))
    fix_number_fields(document.data.encabezado, (F.VALOR_TOTAL_FACTURA,))


async def infer_packs(document: InvoiceDocument) -> None:
    for product in document.products():
        packs = product.get(F.PACKS_CON_UNIDADES)
        if packs is not None and _PACKS_WITH_UNITS.fullmatch(packs.text or ""):
            packs.upgrade()


async def infer_total(document: InvoiceDocument) -> None:
    total_field = document.header().get(F.VALOR_TOTAL_FACTURA)
    if total_field is None:
        return
    products = document.products(include_reductions=True)
    calculated = sum(to_number(product.get(F.VALOR_VENTA_ITEM)) for product in products)
    if document.matches(calculated, to_number(total_field)):
        total_field.upgrade()
        for product in products:
            sale = product.get(F.VALOR_VENTA_ITEM)
            if sale is not None:
                sale.upgrade()


def infer_package_units(product: Product) -> None:
    """Fill or confirm the package size from the ``x N`` suffix of the description."""
    package_units = product.get(F.UNIDADES_EMBALAJE)
    if package_units is None:
        return

    description = product.get(F.ITEM_DESCRIPCION_PRODUCTO)
    match = _PACKAGE_SIZE.match((description.text if description else None) or "")
    value = (package_units.text or "").strip()

    if not value and package_units.confidence == 0:
        # Nothing printed: take the description's size, or accept the blank
        if match:
            package_units.text = match.group(1)
        package_units.upgrade()
    elif match and value.isdigit():
        found = int(match.group(1))
        if int(value) == found:
            package_units.upgrade()
        else:
            package_units.error = (
                f"Unidades embalaje do not match description: Found {found}. Expected {value}"
            )


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        await corroborate_with_catalog(document, product)
        infer_package_units(product)
        check_unit_price(document, product, strict=False)


INFOCARGUE = VendorConfig(
    name="infocargue",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(
        invoice_number=None,
        packaging_type=None,
        product_code=None,
        total_invoice_without_vat=None,
        pack_with_units=F.PACKS_CON_UNIDADES,
    ),
    normalize=(add_missing_detail_fields, normalize_fields, negate_reduction_sales),
    inference=(infer_packs, infer_total, infer_products),
    date_repair=fix_year,
    infer_invoice_number=False,
    exclude_by_catalog=True,
)
