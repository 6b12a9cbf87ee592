"""Confidence rounding strategies.

Vendors either snap every field above a global threshold to 1.0, or apply a
per-field threshold table where low-confidence fields are flagged for review.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from invoicing.documents.fields import OCRField


class ConfidenceStrategy(ABC):
    """Final confidence pass applied after inference."""

    @abstractmethod
    def apply(self, fields: Iterable[OCRField]) -> None:
        """Adjust field confidences (and errors) in place."""


class SnapAboveStrategy(ConfidenceStrategy):
    """Snap any field at or above ``threshold`` to 1.0."""

    def __init__(self, threshold: float = 0.95) -> None:
        self.threshold = threshold

    def apply(self, fields: Iterable[OCRField]) -> None:
        for field in fields:
            if field.confidence >= self.threshold:
                field.upgrade()


class ThresholdTableStrategy(ConfidenceStrategy):
    """Per-field-type thresholds.

    Fields at or above their threshold snap to 1.0; fields below get an error
    for the reviewer unless one is already recorded. Types missing from the
    table are left alone.
    """

    def __init__(self, thresholds: Mapping[str, float]) -> None:
        self.thresholds = MappingProxyType(dict(thresholds))

    def apply(self, fields: Iterable[OCRField]) -> None:
        for field in fields:
            threshold = self.thresholds.get(field.field_type)
            if threshold is None:
                continue
            if field.confidence >= threshold:
                field.upgrade()
            elif not field.error:
                field.error = (
                    f"Confianza menor al umbral ({field.confidence:.2f} < {threshold:.2f})"
                )


def guess_confidence(
    fields: Iterable[OCRField], strategy: ConfidenceStrategy | None = None
) -> None:
    """Apply ``strategy`` (default: snap at 0.95) to ``fields``."""
    (strategy or SnapAboveStrategy()).apply(fields)
