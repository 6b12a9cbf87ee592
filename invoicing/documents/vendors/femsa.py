"""FEMSA (Coca-Cola FEMSA) invoices."""

from invoicing.documents.base import (
    InvoiceDocument,
    VendorConfig,
    corroborate_with_catalog,
    infer_packaging_type,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import is_illegible, to_number
from invoicing.documents.vendors.coke import check_unit_price

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.VALOR_TOTAL_FACTURA,
    F.RAZON_SOCIAL,
    F.TOTAL_FACTURA_SIN_IVA,
    F.IVA_TARIFA_GENERAL,
    F.IBUA,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_VENDIDAS,
    F.VALOR_UNITARIO_ITEM,
    F.VALOR_VENTA_ITEM,
    F.VALOR_IBUA_Y_OTROS,
    F.UNIDADES_EMBALAJE,
    F.CANTIDAD,
    F.VALOR_DESCUENTO,
)

FEMSA_THRESHOLDS = {
    F.FECHA_FACTURA: 0.95,
    F.NUMERO_FACTURA: 0.97,
    F.VALOR_TOTAL_FACTURA: 0.88,
    F.RAZON_SOCIAL: 0.99,
    F.TOTAL_FACTURA_SIN_IVA: 0.88,
    F.CODIGO_PRODUCTO: 0.95,
    F.ITEM_DESCRIPCION_PRODUCTO: 0.92,
    F.UNIDADES_VENDIDAS: 0.83,
    F.UNIDADES_EMBALAJE: 0.85,
    F.TIPO_EMBALAJE: 0.88,
    F.VALOR_UNITARIO_ITEM: 0.93,
    F.VALOR_VENTA_ITEM: 0.9,
    F.VALOR_IBUA_Y_OTROS: 0.89,
}


async def infer_products(document: InvoiceDocument) -> None:
    for product in document.products():
        result = await corroborate_with_catalog(document, product, try_trimmed=False)
        infer_packaging_type(product.get(F.TIPO_EMBALAJE))

        unit_price = product.get(F.VALOR_UNITARIO_ITEM)
        if (
            result is not None
            and result.sale_value is not None
            and unit_price is not None
            and not is_illegible(unit_price.text)
            and to_number(unit_price) == result.sale_value
        ):
            unit_price.upgrade()

        check_unit_price(document, product, strict=False)


FEMSA = VendorConfig(
    name="femsa",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(
        packs_sold=F.UNIDADES_EMBALAJE,
        ibua=F.VALOR_IBUA_Y_OTROS,
        ibua_default=0,
    ),
    inference=(infer_products,),
    exclude_by_catalog=True,
    pruned_detail_fields=(F.VALOR_UNITARIO_ITEM,),
    thresholds=FEMSA_THRESHOLDS,
)
