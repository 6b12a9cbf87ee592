"""Alpina and GRPS distributor invoices.

Both layouts only get number cleanup and two-digit year expansion; their
amounts are taken as printed.
"""

from invoicing.documents.base import (
    BusinessNamePolicy,
    InvoiceDocument,
    VendorConfig,
    add_missing_detail_fields,
)
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout
from invoicing.documents.heuristics import fix_number_fields, fix_year

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.VALOR_TOTAL_FACTURA,
    F.TOTAL_FACTURA_SIN_IVA,
    F.RAZON_SOCIAL,
)

ALPINA_DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.UNIDADES_VENDIDAS,
    F.TIPO_EMBALAJE,
    F.VALOR_VENTA_ITEM,
)

GRPS_DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.UNIDADES_VENDIDAS,
    F.VALOR_VENTA_ITEM,
)

ALPINA_THRESHOLDS = {
    F.FECHA_FACTURA: 0.9,
    F.NUMERO_FACTURA: 0.85,
    F.TOTAL_FACTURA_SIN_IVA: 0.95,
    F.VALOR_TOTAL_FACTURA: 0.95,
    F.RAZON_SOCIAL: 0.95,
    F.CODIGO_PRODUCTO: 0.9,
    F.ITEM_DESCRIPCION_PRODUCTO: 0.9,
    F.TIPO_EMBALAJE: 0.95,
    F.UNIDADES_VENDIDAS: 0.9,
    F.VALOR_VENTA_ITEM: 0.95,
}

LAYOUT = RowLayout(packaging_type=None, packaging_unit=None, packs_sold=None)


def normalize_fields(document: InvoiceDocument) -> None:
    fix_number_fields(document.data.detalles, (F.VALOR_VENTA_ITEM, F.UNIDADES_VENDIDAS))
    fix_number_fields(
        document.data.encabezado,
        (F.TOTAL_FACTURA_SIN_IVA, F.VALOR_TOTAL_FACTURA),
    )


ALPINA = VendorConfig(
    name="alpina",
    header_fields=HEADER_FIELDS,
    detail_fields=ALPINA_DETAIL_FIELDS,
    layout=LAYOUT,
    normalize=(add_missing_detail_fields, normalize_fields),
    date_repair=fix_year,
    infer_date=False,
    business_name=BusinessNamePolicy.NONE,
    pruned_detail_fields=(F.TIPO_EMBALAJE,),
    thresholds=ALPINA_THRESHOLDS,
)

GRPS = VendorConfig(
    name="grps",
    header_fields=HEADER_FIELDS,
    detail_fields=GRPS_DETAIL_FIELDS,
    layout=LAYOUT,
    normalize=(add_missing_detail_fields, normalize_fields),
    date_repair=fix_year,
    infer_date=False,
    infer_invoice_number=False,
    business_name=BusinessNamePolicy.NONE,
    snap_confidence=False,
)
