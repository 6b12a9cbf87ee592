"""AJE invoices.

AJE prints the price before VAT, the discount and the VAT rate per line, so
the sale value is checked against ``before - discount`` plus VAT. Lines that
also print the unit price and IBUA get the Coke unit-price check.
"""

from invoicing.documents.base import (
    InvoiceDocument,
    Product,
    VendorConfig,
    corroborate_with_catalog,
    flag_all,
    infer_packaging_type,
    upgrade_all,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import to_number
from invoicing.documents.vendors.coke import check_unit_price

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.VALOR_TOTAL_FACTURA,
    F.RAZON_SOCIAL,
    F.TOTAL_PRODUCTOS_FILTRADOS,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.UNIDADES_EMBALAJE,
    F.TOTAL_PACAS,
    F.PRECIO_ANTES_IVA,
    F.VALOR_DESCUENTO,
    F.VALOR_IVA,
    F.VALOR_VENTA_ITEM,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_IBUA_Y_OTROS,
)

# Product lines AJE bundles on its invoices but that are not tracked
EXCLUDED_KEYWORDS = ("ANDINA", "ATUN ACEITE", "TRULU")


def expected_sale(before_vat: float, discount: float, vat_rate: float) -> float:
    vat = (before_vat - discount) * (vat_rate / 100)
    return before_vat - discount + vat


def check_before_vat(document: InvoiceDocument, product: Product) -> None:
    inputs = [
        product.get(F.PRECIO_ANTES_IVA),
        product.get(F.VALOR_DESCUENTO),
        product.get(F.VALOR_IVA),
        product.get(F.VALOR_VENTA_ITEM),
    ]
    before_vat, discount, vat_rate, sale = inputs
    expected = expected_sale(to_number(before_vat), to_number(discount), to_number(vat_rate))
    observed = to_number(sale)
    if document.matches(expected, observed):
        upgrade_all(inputs)
    else:
        flag_all(
            inputs,
            f"Product total calculation do not match: Calculated: {expected}, "
            f"Expected : {observed}",
        )


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        await corroborate_with_catalog(document, product, try_trimmed=False)
        infer_packaging_type(product.get(F.TIPO_EMBALAJE))
        check_before_vat(document, product)
        check_unit_price(document, product, strict=False)


AJE = VendorConfig(
    name="aje",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(
        packs_sold=None,
        total_invoice_without_vat=None,
    ),
    inference=(infer_products,),
    exclude_by_catalog=True,
    keyword_denylist=EXCLUDED_KEYWORDS,
    pruned_header_fields=(F.TOTAL_PRODUCTOS_FILTRADOS,),
    pruned_detail_fields=(
        F.TOTAL_PACAS,
        F.VALOR_DESCUENTO,
        F.PRECIO_ANTES_IVA,
        F.VALOR_IVA,
        F.VALOR_UNITARIO_ITEM,
    ),
)
