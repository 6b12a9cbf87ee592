"""Heuristic helpers for OCR invoice fields.

Row grouping, numeric coercion, and date validity/obsolescence/repair rules
used by every vendor document.
"""

import logging
import math
import re
from collections.abc import Callable, Iterable
from datetime import date, datetime

from invoicing.documents.constants import DATE_FORMAT, NULL_STRING, OCR_DIGIT_CONFUSIONS
from invoicing.documents.fields import OCRField

logger = logging.getLogger(__name__)

_NUMERIC_TAIL = re.compile(r"-?[0-9]+")
_STRICT_DATE = re.compile(r"[0-9]{2}/[0-9]{2}/[0-9]{4}")
_DAY_FIRST = re.compile(r"([0-9]{1,2})[/-]([0-9]{1,2})[/-]([0-9]{4})")
_YEAR_FIRST = re.compile(r"([0-9]{4})[/-]([0-9]{1,2})[/-]([0-9]{1,2})")
_SHORT_YEAR = re.compile(r"([0-9]{1,2})[/-]([0-9]{1,2})[/-]([0-9]{2})")
_DOT_THOUSANDS = re.compile(r"[1-9][0-9]{0,2}(\.[0-9]{3})+")

ObsolescenceCheck = Callable[[str | None, int, date | None], bool]


# ---------------------------------------------------------------------------
# Rows and fields
# ---------------------------------------------------------------------------


def group_by_row(fields: Iterable[OCRField]) -> list[list[OCRField]]:
    """Group detail fields into products by their row number.

    Args:
        fields: Detail fields of one invoice

    Returns:
        One list per distinct row, ordered by row ascending. An empty list when
        any field has an absent or non-positive row (ungroupable payload).
    """
    groups: dict[int, list[OCRField]] = {}
    for field in fields:
        if field.row is None or field.row < 1:
            logger.warning(
                f"Ungroupable detail field {field.field_type!r} with row {field.row!r}"
            )
            return []
        groups.setdefault(field.row, []).append(field)
    return [groups[row] for row in sorted(groups)]


def to_field_map(fields: Iterable[OCRField]) -> dict[str, OCRField]:
    """Index fields by type. Later duplicates replace earlier ones."""
    return {field.field_type: field for field in fields}


def parse_number(value: OCRField | str | None) -> float | None:
    """Parse a plain decimal amount, None when absent or unparseable."""
    text = value.text if isinstance(value, OCRField) else value
    if not text:
        return None
    try:
        number = float(text.strip())
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def to_number(value: OCRField | str | None) -> float:
    """Coerce a field (or raw text) to a number; absent or unparseable gives 0."""
    number = parse_number(value)
    return 0.0 if number is None else number


def is_numeric_tail(text: str | None) -> bool:
    return bool(text) and _NUMERIC_TAIL.fullmatch(text) is not None


def is_illegible(text: str | None) -> bool:
    return not text or text == NULL_STRING


def parse_and_fix_number(text: str | None) -> str | None:
    """Rewrite a printed amount into a plain decimal string.

    Colombian invoices use "." for thousands and "," for decimals, but OCR
    output mixes both conventions. Examples::

        "12.888,4" -> "12888.4"
        "999,6"    -> "999.6"
        "$ 1.200"  -> "1200"
        "1,500"    -> "1500"

    Idempotent on its own output.
    """
    if text is None:
        return None
    cleaned = re.sub(r"[\s$]", "", text)
    if not cleaned:
        return cleaned

    sign = ""
    if cleaned.startswith("-"):
        sign, cleaned = "-", cleaned[1:]

    if "," in cleaned and "." in cleaned:
        decimal = "," if cleaned.rfind(",") > cleaned.rfind(".") else "."
        thousands = "." if decimal == "," else ","
        cleaned = cleaned.replace(thousands, "").replace(decimal, ".")
    elif "," in cleaned:
        parts = cleaned.split(",")
        if len(parts) == 2 and len(parts[1]) != 3:
            cleaned = ".".join(parts)
        else:
            cleaned = "".join(parts)
    elif _DOT_THOUSANDS.fullmatch(cleaned):
        cleaned = cleaned.replace(".", "")

    return sign + cleaned


def fix_number_fields(fields: Iterable[OCRField], field_types: Iterable[str]) -> None:
    """Apply ``parse_and_fix_number`` in place to fields of the given types."""
    wanted = set(field_types)
    for field in fields:
        if field.field_type in wanted and field.text:
            field.text = parse_and_fix_number(field.text)


def add_missing_fields(details: list[OCRField], field_types: Iterable[str]) -> list[OCRField]:
    """Return details where every row carries every expected field type.

    Missing fields are added with empty text and zero confidence. Ungroupable
    input is returned unchanged.
    """
    expected = list(field_types)
    groups = group_by_row(details)
    if not groups:
        return details

    completed: list[OCRField] = []
    for group in groups:
        row = group[0].row
        present = {field.field_type for field in group}
        completed.extend(group)
        completed.extend(
            OCRField(field_type=field_type, text="", confidence=0.0, row=row)
            for field_type in expected
            if field_type not in present
        )
    return completed


def remove_fields(fields: Iterable[OCRField], field_types: Iterable[str]) -> list[OCRField]:
    dropped = set(field_types)
    return [field for field in fields if field.field_type not in dropped]


# ---------------------------------------------------------------------------
# Dates
# ---------------------------------------------------------------------------


def parse_date(text: str | None) -> date | None:
    """Parse strict ``dd/mm/yyyy`` text, None when malformed or impossible."""
    if not text or not _STRICT_DATE.fullmatch(text):
        return None
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        return None


def is_valid_date(text: str | None) -> bool:
    return parse_date(text) is not None


def to_iso_date(text: str | None) -> str | None:
    """Convert ``dd/mm/yyyy`` text to ``yyyy-mm-dd``."""
    parsed = parse_date(text)
    return parsed.isoformat() if parsed else None


def has_months_passed(text: str | None, months: int = 2, today: date | None = None) -> bool:
    """Check whether an invoice date is still recent enough to process.

    Unparseable dates are reported as processable so one bad date does not
    block a batch (the format check flags them separately). Only the month
    numbers are compared; the year is ignored, so a date from the same month
    of an earlier year passes.

    Args:
        text: Invoice date as ``dd/mm/yyyy``
        months: Obsolescence window in months
        today: Reference date, defaults to the current date

    Returns:
        True when the date is inside the window (or unparseable)
    """
    parsed = parse_date(text)
    if parsed is None:
        return True
    today = today or date.today()
    return abs(today.month - parsed.month) < months


def has_months_passed_calendar(
    text: str | None, months: int = 2, today: date | None = None
) -> bool:
    """Full calendar variant of ``has_months_passed``.

    Counts elapsed months across years; future-dated invoices are rejected.
    Unparseable dates are still reported as processable.
    """
    parsed = parse_date(text)
    if parsed is None:
        return True
    today = today or date.today()
    elapsed = (today.year * 12 + today.month) - (parsed.year * 12 + parsed.month)
    return 0 <= elapsed < months


def obsolescence_check(policy: str) -> ObsolescenceCheck:
    """Return the obsolescence rule configured by ``Settings.obsolescence_policy``."""
    if policy == "calendar":
        return has_months_passed_calendar
    if policy == "month_number":
        return has_months_passed
    raise ValueError(f"Unknown obsolescence policy: '{policy}'")


def _substitute_digits(value: str, accept: Callable[[int], bool]) -> str | None:
    """Try every single-digit OCR confusion and return the first accepted value."""
    for position, digit in enumerate(value):
        for alternative in OCR_DIGIT_CONFUSIONS.get(digit, ()):
            candidate = value[:position] + alternative + value[position + 1 :]
            if accept(int(candidate)):
                return candidate
    return None


def repair_year(candidate: str, current_year: int) -> str:
    """Bring an OCR-misread year back into ``[current_year - 5, current_year + 1]``.

    Args:
        candidate: Four-digit year as read
        current_year: Reference year

    Returns:
        The candidate when already in range, the first single-digit
        substitution from the confusion table that lands in range, otherwise
        ``current_year``.
    """

    def in_window(year: int) -> bool:
        return current_year - 5 <= year <= current_year + 1

    if candidate.isdigit() and in_window(int(candidate)):
        return candidate
    if candidate.isdigit():
        repaired = _substitute_digits(candidate, in_window)
        if repaired is not None:
            return repaired
    return str(current_year)


def _repair_component(value: str, low: int, high: int) -> str | None:
    def in_range(number: int) -> bool:
        return low <= number <= high

    if in_range(int(value)):
        return value.zfill(2)
    repaired = _substitute_digits(value, in_range)
    return repaired.zfill(2) if repaired is not None else None


def repair_date(field: OCRField, today: date | None = None) -> bool:
    """Repair an OCR-damaged invoice date in place.

    Accepts ``dd-mm-yyyy`` / ``dd/mm/yyyy`` and the inverted ``yyyy-mm-dd``
    shapes, fixes confused year digits (and out-of-range day or month digits),
    and rewrites the text as ``dd/mm/yyyy``. Text that cannot be repaired is
    left untouched.

    Returns:
        True when the field text was rewritten
    """
    text = (field.text or "").strip()
    if is_valid_date(text):
        return False

    if match := _DAY_FIRST.fullmatch(text):
        day, month, year = match.groups()
    elif match := _YEAR_FIRST.fullmatch(text):
        year, month, day = match.groups()
    else:
        return False

    today = today or date.today()
    repaired_day = _repair_component(day, 1, 31)
    repaired_month = _repair_component(month, 1, 12)
    if repaired_day is None or repaired_month is None:
        return False

    candidate = f"{repaired_day}/{repaired_month}/{repair_year(year, today.year)}"
    if not is_valid_date(candidate):
        return False

    logger.debug(f"Repaired date {field.text!r} -> {candidate!r}")
    field.text = candidate
    return True


def fix_year(field: OCRField, today: date | None = None) -> bool:
    """Expand a two-digit year (``dd/mm/yy``) and then run ``repair_date``."""
    text = (field.text or "").strip()
    if match := _SHORT_YEAR.fullmatch(text):
        day, month, year = match.groups()
        field.text = f"{day.zfill(2)}/{month.zfill(2)}/20{year}"
        repair_date(field, today)
        return True
    return repair_date(field, today)
