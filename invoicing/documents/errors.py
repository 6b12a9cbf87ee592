"""Exceptions raised by the invoice validation engine."""


class InvoiceValidationError(Exception):
    """Base class for engine errors."""


class UnsupportedDocumentError(InvoiceValidationError, ValueError):
    """Raised when no vendor document is registered for a label."""

    def __init__(self, label: str, available: list[str]) -> None:
        self.label = label
        self.available = available
        super().__init__(
            f"Documento no soportado: '{label}'. Available: {', '.join(available)}"
        )


class FormatNotReadyError(InvoiceValidationError, RuntimeError):
    """Raised when ``format()`` is called before the pipeline has run."""
