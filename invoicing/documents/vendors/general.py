"""Catch-all layout for vendors without a dedicated configuration.

Fields are reported as extracted: no date rules, no inference, no exclusion.
"""

from invoicing.documents.base import BusinessNamePolicy, VendorConfig
from invoicing.documents.fields import FieldName as F
from invoicing.documents.formatter import RowLayout

HEADER_FIELDS = (
    F.FECHA_FACTURA,
    F.NUMERO_FACTURA,
    F.RAZON_SOCIAL,
    F.VALOR_TOTAL_FACTURA,
    F.TOTAL_FACTURA_SIN_IVA,
)

DETAIL_FIELDS = (
    F.CODIGO_PRODUCTO,
    F.ITEM_DESCRIPCION_PRODUCTO,
    F.TIPO_EMBALAJE,
    F.UNIDADES_EMBALAJE,
    F.PACKS_VENDIDOS,
    F.UNIDADES_VENDIDAS,
    F.VALOR_VENTA_ITEM,
    F.VALOR_IBUA_Y_OTROS,
)

GENERAL = VendorConfig(
    name="general",
    header_fields=HEADER_FIELDS,
    detail_fields=DETAIL_FIELDS,
    layout=RowLayout(ibua=F.VALOR_IBUA_Y_OTROS, ibua_default=0),
    validate_date=False,
    infer_date=False,
    infer_invoice_number=False,
    business_name=BusinessNamePolicy.NONE,
    snap_confidence=False,
)
