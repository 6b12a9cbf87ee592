"""Vendor label dispatch.

The label table is closed: every supported label is listed here, and any
other label is rejected before a document is built.
"""

import logging
from datetime import date
from types import MappingProxyType

from invoicing.documents.base import InvoiceDocument, VendorConfig
from invoicing.documents.catalog import CatalogPorts
from invoicing.documents.errors import UnsupportedDocumentError
from invoicing.documents.fields import CanonicalResultRow, InvoicePayload
from invoicing.documents.formatter import build_rows
from invoicing.documents.metrics import unsupported_documents_total
from invoicing.documents.vendors.aje import AJE
from invoicing.documents.vendors.alpina import ALPINA, GRPS
from invoicing.documents.vendors.coke import COKE, ENTREGA_COKE
from invoicing.documents.vendors.femsa import FEMSA
from invoicing.documents.vendors.general import GENERAL
from invoicing.documents.vendors.infocargue import INFOCARGUE
from invoicing.documents.vendors.kopps import KOPPS
from invoicing.documents.vendors.postobon import ENTREGA_POSTOBON, POSTOBON, TIQUETE_POS
from invoicing.documents.vendors.quala import QUALA
from invoicing.documents.vendors.tolima import TOLIMA
from invoicing.shared.config import Settings

logger = logging.getLogger(__name__)


class DocumentFactory:
    """Sole construction entry point for vendor documents."""

    _documents: MappingProxyType[str, VendorConfig] = MappingProxyType(
        {
            "Factura Coke": COKE,
            "Factura Entrega Coke": ENTREGA_COKE,
            "Femsa": FEMSA,
            "Factura Femsa": FEMSA,
            "Factura Infocargue": INFOCARGUE,
            "Aje": AJE,
            "Factura Aje": AJE,
            "Factura Postobon": POSTOBON,
            "Factura Tiquete POS Postobon": TIQUETE_POS,
            "Factura Postobon Tiquete": TIQUETE_POS,
            "Factura Entrega Postobon": ENTREGA_POSTOBON,
            "Quala": QUALA,
            "Factura Quala": QUALA,
            "Factura Kopps": KOPPS,
            "Factura Tolima": TOLIMA,
            "Factura Alpina": ALPINA,
            "Factura Distribuidor GRPS": GRPS,
            "Factura Otros Proveedores": GENERAL,
        }
    )

    @classmethod
    def labels(cls) -> list[str]:
        return list(cls._documents)

    @classmethod
    def config_for(cls, label: str) -> VendorConfig:
        """Look up the vendor configuration for a label.

        Raises:
            UnsupportedDocumentError: If the label is not in the table
        """
        config = cls._documents.get(label)
        if config is None:
            unsupported_documents_total.inc()
            logger.warning(f"Unsupported document label: {label!r}")
            raise UnsupportedDocumentError(label, cls.labels())
        return config

    @classmethod
    def create(
        cls,
        label: str,
        payload: InvoicePayload,
        catalogs: CatalogPorts,
        settings: Settings | None = None,
        today: date | None = None,
    ) -> InvoiceDocument:
        """Build the vendor document for a label.

        Args:
            label: Vendor document label
            payload: Freshly deserialized OCR payload
            catalogs: Catalog lookup ports
            settings: Application settings
            today: Reference date for date rules

        Returns:
            Unprocessed document

        Raises:
            UnsupportedDocumentError: If the label is not supported
        """
        return InvoiceDocument(cls.config_for(label), payload, catalogs, settings, today)

    @classmethod
    def format(cls, label: str, payload: InvoicePayload) -> list[CanonicalResultRow]:
        """Canonical rows for a payload that already went through the pipeline."""
        return build_rows(payload, cls.config_for(label).layout)

    @staticmethod
    def resolve_label(assigned_label: str | None, ocr_label: str | None) -> str:
        """Label to dispatch on: the OCR-detected layout wins over the assigned one.

        The OCR service may recognize a more specific layout (a POS ticket
        instead of a Postobon invoice, say) than the one assigned upstream.
        """
        if ocr_label and ocr_label.strip():
            return ocr_label.strip()
        return (assigned_label or "").strip()
