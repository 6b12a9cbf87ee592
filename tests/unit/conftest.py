"""Shared fixtures for unit tests."""

import os
from collections.abc import Callable, Generator
from datetime import date
from typing import Any

import pytest

from invoicing.documents.catalog import CatalogPorts, in_memory_catalogs
from invoicing.documents.fields import InvoicePayload, OCRField
from invoicing.shared.config import Settings

TODAY = date(2026, 10, 19)


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Clean environment variables before and after test."""
    original_env = dict(os.environ)
    env_vars = [k for k in os.environ if k.startswith("APP_")]
    for var in env_vars:
        del os.environ[var]
    yield
    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def settings(clean_env: None) -> Settings:
    return Settings()


@pytest.fixture
def today() -> date:
    return TODAY


@pytest.fixture
def catalogs() -> CatalogPorts:
    """Empty in-memory catalogs."""
    return in_memory_catalogs()


@pytest.fixture
def make_field() -> Callable[..., OCRField]:
    def _make(
        field_type: str, text: str | None = "", confidence: float = 0.5, row: int | None = None
    ) -> OCRField:
        return OCRField(field_type=field_type, text=text, confidence=confidence, row=row)

    return _make


@pytest.fixture
def make_payload() -> Callable[..., InvoicePayload]:
    """Build a payload from {type: (text, confidence)} header and per-row dicts."""

    def _make(
        header: dict[str, tuple[str | None, float]],
        rows: list[dict[str, tuple[str | None, float]]],
        factura_id: int = 1001,
    ) -> InvoicePayload:
        return InvoicePayload(
            encabezado=[
                OCRField(field_type=t, text=text, confidence=conf)
                for t, (text, conf) in header.items()
            ],
            detalles=[
                OCRField(field_type=t, text=text, confidence=conf, row=row)
                for row, fields in enumerate(rows, start=1)
                for t, (text, conf) in fields.items()
            ],
            factura_id=factura_id,
            survey_record_id=77,
        )

    return _make


@pytest.fixture
def sample_wire_payload() -> dict[str, Any]:
    """Postobon invoice as delivered by the OCR vendor."""
    return {
        "encabezado": [
            {"fieldType": "fecha_factura", "text": "2825-18-24", "confidence": 0.9},
            {"fieldType": "numero_factura", "text": "INV-00-61443", "confidence": 0.8},
            {"fieldType": "razon_social", "text": "POSTOBON S.A.", "confidence": 0.7},
            {"fieldType": "total_factura_sin_iva", "text": "999,6", "confidence": 0.9},
            {"fieldType": "valor_total_factura", "text": "12888,4", "confidence": 0.9},
        ],
        "detalles": [
            {"fieldType": "codigo_producto", "text": "1001", "confidence": 0.6, "row": 1},
            {
                "fieldType": "item_descripcion_producto",
                "text": "GASEOSA COLOMBIANA 400ML",
                "confidence": 0.7,
                "row": 1,
            },
            {"fieldType": "tipo_embalaje", "text": "UND", "confidence": 0.6, "row": 1},
            {"fieldType": "unidades_vendidas", "text": "1.2", "confidence": 0.5, "row": 1},
            {"fieldType": "unidades_embalaje", "text": "24", "confidence": 0.5, "row": 1},
            {"fieldType": "packs_vendidos", "text": "", "confidence": 0.0, "row": 1},
            {"fieldType": "valor_unitario_item", "text": "10000", "confidence": 0.5, "row": 1},
            {"fieldType": "valor_venta_item", "text": "12000", "confidence": 0.6, "row": 1},
            {"fieldType": "valor_descuento_item", "text": "0", "confidence": 0.5, "row": 1},
            {"fieldType": "aplica_iva_item", "text": "0", "confidence": 0.5, "row": 1},
        ],
        "tipoFacturaOcr": "Factura Postobon",
        "facturaId": 4242,
        "surveyRecordId": 9,
    }


@pytest.fixture
def sample_payload(sample_wire_payload: dict[str, Any]) -> InvoicePayload:
    return InvoicePayload.model_validate(sample_wire_payload)
