"""Field, payload and canonical row models for OCR invoices.

OCR payloads arrive as JSON with Spanish camelCase keys; models accept those
aliases and expose snake_case attributes.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class OCRField(BaseModel):
    """One labeled value read by the OCR vendor.

    Attributes:
        field_type: Vendor-specific field name (e.g. "valor_venta_item")
        text: Raw text as read, None when the OCR vendor returned nothing
        confidence: OCR confidence in [0, 1]
        row: 1-based product row for detail fields
        error: Soft error recorded for human review
    """

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    field_type: str = Field(alias="fieldType")
    text: str | None = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    row: int | None = None
    error: str | None = None

    def upgrade(self) -> None:
        """Mark the value as corroborated."""
        self.confidence = 1.0


class InvoicePayload(BaseModel):
    """OCR output for one invoice: header fields plus row-tagged detail fields."""

    model_config = ConfigDict(populate_by_name=True)

    encabezado: list[OCRField] = Field(default_factory=list)
    detalles: list[OCRField] = Field(default_factory=list)
    tipo_factura_ocr: str = Field(default="", alias="tipoFacturaOcr")
    factura_id: int = Field(alias="facturaId")
    survey_record_id: int | None = Field(default=None, alias="surveyRecordId")
    url_factura: str | None = Field(default=None, alias="urlFactura")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the external camelCase keys."""
        return self.model_dump(by_alias=True, exclude_none=True)


class CanonicalResultRow(BaseModel):
    """Database-ready row produced by a document's format stage."""

    model_config = ConfigDict(populate_by_name=True)

    invoice_id: int = Field(alias="invoiceId")
    row_number: int = Field(alias="rowNumber")
    survey_record_id: int | None = Field(default=None, alias="surveyRecordId")
    business_name: str = Field(alias="businessName")
    description: str
    invoice_date: str = Field(alias="invoiceDate")
    invoice_number: str = Field(alias="invoiceNumber")
    packaging_type: str = Field(alias="packagingType")
    packaging_unit: int | float = Field(alias="packagingUnit")
    packs_sold: int | float = Field(alias="packsSold")
    units_sold: int | float = Field(alias="unitsSold")
    product_code: str = Field(alias="productCode")
    sale_value: int | float = Field(alias="saleValue")
    total_invoice: int | float = Field(alias="totalInvoice")
    total_invoice_without_vat: int | float = Field(alias="totalInvoiceWithoutVAT")
    value_ibua_and_others: int | float = Field(alias="valueIbuaAndOthers")

    def to_wire(self) -> dict[str, Any]:
        """Serialize with the external camelCase keys."""
        return self.model_dump(by_alias=True)


class ValidationResult(BaseModel):
    """Snapshot returned by ``InvoiceDocument.get()``."""

    data: InvoicePayload
    errors: dict[str, str] = Field(default_factory=dict)
    is_valid: bool = True


class FieldName(StrEnum):
    """Field types printed across vendor layouts."""

    FECHA_FACTURA = "fecha_factura"
    NUMERO_FACTURA = "numero_factura"
    RAZON_SOCIAL = "razon_social"
    TOTAL_FACTURA_SIN_IVA = "total_factura_sin_iva"
    VALOR_TOTAL_FACTURA = "valor_total_factura"
    TOTAL_PRODUCTOS_FILTRADOS = "total_productos_filtrados"
    CODIGO_PRODUCTO = "codigo_producto"
    ITEM_DESCRIPCION_PRODUCTO = "item_descripcion_producto"
    TIPO_EMBALAJE = "tipo_embalaje"
    UNIDADES_VENDIDAS = "unidades_vendidas"
    VALOR_UNITARIO_ITEM = "valor_unitario_item"
    VALOR_VENTA_ITEM = "valor_venta_item"
    UNIDADES_EMBALAJE = "unidades_embalaje"
    PACKS_VENDIDOS = "packs_vendidos"
    VALOR_IBUA_Y_OTROS = "valor_ibua_y_otros"
    VALOR_VENTA_ITEM_TOTAL_NC = "valor_venta_item_total_nc"
    ES_DEVOLUCION = "es_devolucion"
    VALOR_DESCUENTO_ITEM = "valor_descuento_item"
    APLICA_IVA_ITEM = "aplica_iva_item"
    TOTAL_UNIDADES = "total_unidades"
    TOTAL_PACAS = "total_pacas"
    PRECIO_ANTES_IVA = "precio_antes_iva"
    VALOR_IVA = "valor_iva"
    IVA_TARIFA_GENERAL = "iva_tarifa_general"
    IBUA = "ibua"
    CANTIDAD = "cantidad"
    VALOR_DESCUENTO = "valor_descuento"
    PACKS_CON_UNIDADES = "packs_con_unidades"
    VALOR_TOTAL_UNITARIO_ITEM = "valor_total_unitario_item"
    TOTAL_ICO = "total_ico"
    PORCENTAJE_ICUI = "porcentaje_icui"
    TOTAL_IBUA = "total_ibua"
    TOTAL_ARTICULOS = "total_articulos"
    VALOR_SUBTOTAL_ITEM = "valor_subtotal_item"
    CAJAS = "cajas"
    UNIDADES = "unidades"
    DESCUENTO = "descuento"
    PRECIO_BRUTO_ITEM = "precio_bruto_item"
