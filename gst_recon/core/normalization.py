"""
Pure helpers turning raw invoice-number, date and amount representations
into canonical, comparable forms.

Every parser here is total: a value that cannot be read yields ``None``
(or an empty string for derived keys) instead of raising.
"""
import calendar
import math
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from rapidfuzz.distance import Levenshtein

from gst_recon.schemas.reconciliation import SimilarityMethod, SimilarityResult

# Trailing financial-year suffix such as "/24-25", "-2024-25" or " 2024-2025"
FY_SUFFIX_PATTERN = re.compile(r"\s*[/-]?\d{2,4}-\d{2,4}\s*$")
DATE_STRING_PATTERN = re.compile(r"^(\d{1,2})([-/])(\d{1,2})\2(\d{4})$")
SIMILARITY_CLEANUP_PATTERN = re.compile(r"[\s/-]")

# Spreadsheet serial 0 is 1899-12-30 in the 1900 date system (serial 25569 == 1970-01-01).
EXCEL_EPOCH = date(1899, 12, 30)
MAX_EXCEL_SERIAL = (date.max - EXCEL_EPOCH).days

LEVENSHTEIN_THRESHOLD = 2
LEVENSHTEIN_MIN_LENGTH = 4
NUMERIC_MIN_DIGITS = 3


def normalize_invoice_number(raw: Optional[Any]) -> str:
    """
    Normalizes an invoice number for equality matching.

    Strips a trailing financial-year suffix (``INV-100/24-25`` -> ``INV-100``),
    uppercases and trims. A cut that would leave nothing is not made, so
    ``2024-001`` stays ``2024-001``. ``None`` yields an empty string. Idempotent.
    """
    if raw is None:
        return ""
    normalized = str(raw).strip()
    # Repeat until no suffix is left; "10-100-20-21" only settles after two cuts.
    while True:
        stripped = FY_SUFFIX_PATTERN.sub("", normalized, count=1)
        if stripped == normalized or not stripped.strip():
            break
        normalized = stripped
    return normalized.upper().strip()


def canonical_month_year(value: Optional[date]) -> str:
    if not isinstance(value, date):
        return ""
    return f"{value.year:04d}-{value.month:02d}"


def _financial_year_start(value: date) -> int:
    # Jan-Mar belong to the financial year that started the previous April
    return value.year if value.month >= 4 else value.year - 1


def financial_year(value: Optional[date]) -> str:
    """April of year Y through March of Y+1 is ``"Y-(Y+1 mod 100)"``, e.g. ``"2023-24"``."""
    if not isinstance(value, date):
        return ""
    start = _financial_year_start(value)
    return f"{start}-{(start + 1) % 100:02d}"


def financial_quarter(value: Optional[date]) -> Optional[int]:
    """Quarter within the financial year: Q1=Apr-Jun, Q2=Jul-Sep, Q3=Oct-Dec, Q4=Jan-Mar."""
    if not isinstance(value, date):
        return None
    return ((value.month - 4) % 12) // 3 + 1


def quarter_key(value: Optional[date]) -> str:
    """Financial quarter qualified by the financial year's start, e.g. ``"2024-Q1"``."""
    if not isinstance(value, date):
        return ""
    return f"{_financial_year_start(value)}-Q{financial_quarter(value)}"


def excel_serial_to_date(serial: Any) -> Optional[date]:
    """
    Converts a spreadsheet serial day number (1900 date system) to a calendar date.
    Any fractional time-of-day part is dropped, so no timezone can shift the day.
    """
    if isinstance(serial, bool) or not isinstance(serial, (int, float)):
        return None
    if not math.isfinite(serial) or serial <= 0 or serial > MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=int(math.floor(serial)))


def parse_date_string(text: Any) -> Optional[date]:
    """Parses ``DD-MM-YYYY`` or ``DD/MM/YYYY``. Impossible dates such as ``32-13-2024`` yield ``None``."""
    if not isinstance(text, str):
        return None
    match = DATE_STRING_PATTERN.match(text.strip())
    if not match:
        return None
    day, month, year = int(match.group(1)), int(match.group(3)), int(match.group(4))
    if year < 1 or not 1 <= month <= 12:
        return None
    if not 1 <= day <= calendar.monthrange(year, month)[1]:
        return None
    return date(year, month, day)


def parse_date(value: Any) -> Optional[date]:
    """
    Reads an invoice date from a spreadsheet serial, a ``DD-MM-YYYY`` /
    ``DD/MM/YYYY`` string or a ``date``/``datetime`` value.
    Aware datetimes are read in UTC. Every other shape yields ``None``.
    """
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date_string(value)
    if isinstance(value, (int, float)):
        return excel_serial_to_date(value)
    return None


def _significant_digits(text: str) -> str:
    return "".join(ch for ch in text if ch.isdigit()).lstrip("0")


def check_similarity(first: Optional[str], second: Optional[str]) -> Optional[SimilarityResult]:
    """
    Two-tier heuristic over raw invoice numbers.

    1. Numeric: both reduce to the same digit sequence (leading zeros ignored,
       at least three significant digits) -> score 0.
    2. Levenshtein: edit distance of the uppercased strings without spaces,
       slashes and hyphens is at most 2, and the shorter one has at least
       four characters -> score is the distance.

    Returns ``None`` when neither tier accepts, or the inputs are empty or identical.
    """
    if not first or not second:
        return None
    left = str(first).strip().upper()
    right = str(second).strip().upper()
    if not left or not right or left == right:
        return None

    left_digits = _significant_digits(left)
    if len(left_digits) >= NUMERIC_MIN_DIGITS and left_digits == _significant_digits(right):
        return SimilarityResult(method=SimilarityMethod.NUMERIC, score=0)

    left_clean = SIMILARITY_CLEANUP_PATTERN.sub("", left)
    right_clean = SIMILARITY_CLEANUP_PATTERN.sub("", right)
    if min(len(left_clean), len(right_clean)) < LEVENSHTEIN_MIN_LENGTH:
        return None
    distance = Levenshtein.distance(left_clean, right_clean)
    if distance <= LEVENSHTEIN_THRESHOLD:
        return SimilarityResult(method=SimilarityMethod.LEVENSHTEIN, score=distance)
    return None
