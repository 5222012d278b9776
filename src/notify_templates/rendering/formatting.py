"""Value formatting: numeric coercion, field values and statistic values.

Every function here is total: it never raises for any input and always
returns a string (or ``None`` for :func:`try_parse_numeric`).  Output is
deterministic and independent of the process locale.
"""

from __future__ import annotations

import math
import re
from collections.abc import Mapping
from datetime import UTC, date, datetime
from typing import Any

from notify_templates.template.constants import CURRENCY_SYMBOLS
from notify_templates.template.models import StatisticFormat
from notify_templates.types import FieldType, FormatType

MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

DATE_TYPES = frozenset({FieldType.DATE, FieldType.DATE_ONLY, FieldType.TIMESTAMP_OFFSET})
DECIMAL_TYPES = frozenset({FieldType.DOUBLE, FieldType.SINGLE})
INTEGER_TYPES = frozenset({FieldType.INTEGER, FieldType.SMALL_INTEGER, FieldType.BIG_INTEGER, FieldType.OID})

_GROUPED_NUMBER = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d+)?$")
_DATE_TOKEN = re.compile(r"YYYY|MMMM|MMM|MM|dddd|DD|D")
_STRING_DATE_FORMATS = (
    "%m/%d/%Y",
    "%m/%d/%Y %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%Y/%m/%d",
    "%b %d, %Y",
    "%B %d, %Y",
    "%d %b %Y",
)


# ── Numeric coercion ───────────────────────────────────────────────────────


def try_parse_numeric(value: Any) -> float | None:
    """Coerce *value* to a finite float, or ``None`` when it is not numeric.

    Accepts ints, floats and numeric strings, including comma-grouped strings
    such as ``"1,234.5"``.  Blank strings, booleans, ``NaN`` and infinities
    are not numeric.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        try:
            number = float(value)
        except OverflowError:
            return None
        return number if math.isfinite(number) else None
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text or "_" in text:
        return None
    if _GROUPED_NUMBER.match(text):
        text = text.replace(",", "")
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def round_half_up(number: float) -> int:
    return int(math.floor(number + 0.5))


def format_number(number: float, decimals: int | None = None, *, thousands: bool = True) -> str:
    """Format *number* with a fixed number of decimals.

    With ``decimals=None`` up to two decimals are kept and trailing zeros are
    dropped (``1234.5`` -> ``"1,234.5"``).
    """
    places = 2 if decimals is None else max(0, min(int(decimals), 10))
    if round(number, places) == 0:
        number = 0.0
    number_format = f",.{places}f" if thousands else f".{places}f"
    text = format(number, number_format)
    if decimals is None and "." in text:
        text = text.rstrip("0").rstrip(".")
    return text


def format_currency(number: float, currency: str = "USD", decimals: int | None = 0) -> str:
    code = (currency or "USD").upper()
    amount = format_number(abs(number), 0 if decimals is None else decimals)
    sign = "-" if number < 0 and amount.strip("0.,") else ""
    symbol = CURRENCY_SYMBOLS.get(code)
    if symbol is None:
        return f"{sign}{code} {amount}"
    return f"{sign}{symbol}{amount}"


# ── Dates ─────────────────────────────────────────────────────────────────


def parse_date(value: Any) -> datetime | None:
    """Parse epoch milliseconds or a date string; ``None`` when unparsable."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)

    number = try_parse_numeric(value)
    if number is not None:
        try:
            return datetime.fromtimestamp(number / 1000, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None

    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    for pattern in _STRING_DATE_FORMATS:
        try:
            return datetime.strptime(text, pattern)
        except ValueError:
            continue
    return None


def format_date_value(value: Any) -> str:
    """Render a date as ``"<Mon> <D>, <YYYY>"``; unparsable input is stringified."""
    parsed = parse_date(value)
    if parsed is None:
        return str(value)
    return f"{MONTH_NAMES[parsed.month - 1][:3]} {parsed.day}, {parsed.year}"


def format_date_pattern(moment: datetime, pattern: str) -> str:
    """Render *moment* with a designer date preset such as ``"MMMM D, YYYY"``."""

    def _token(match: re.Match[str]) -> str:
        token = match.group(0)
        if token == "YYYY":
            return f"{moment.year:04d}"
        if token == "MMMM":
            return MONTH_NAMES[moment.month - 1]
        if token == "MMM":
            return MONTH_NAMES[moment.month - 1][:3]
        if token == "MM":
            return f"{moment.month:02d}"
        if token == "dddd":
            return DAY_NAMES[moment.weekday()]
        if token == "DD":
            return f"{moment.day:02d}"
        return str(moment.day)

    return _DATE_TOKEN.sub(_token, pattern or "MMM D, YYYY")


# ── Field formatter ────────────────────────────────────────────────────────


def normalize_field_type(field_type: Any) -> FieldType | None:
    """Map a remote type name (``esriFieldTypeDouble`` or ``"double"``) to :class:`FieldType`."""
    if isinstance(field_type, FieldType):
        return field_type
    if not isinstance(field_type, str) or not field_type:
        return None
    try:
        return FieldType(field_type)
    except ValueError:
        pass
    short = field_type.lower().removeprefix("esrifieldtype")
    for member in FieldType:
        if member.value.lower().removeprefix("esrifieldtype") == short:
            return member
    return None


def _code_key(value: Any) -> str:
    number = try_parse_numeric(value) if not isinstance(value, str) else None
    if number is not None and number.is_integer():
        return str(int(number))
    return str(value).strip()


def lookup_domain(value: Any, domain: Mapping[Any, str] | None) -> str | None:
    if not domain:
        return None
    target = _code_key(value)
    for code, name in domain.items():
        if _code_key(code) == target:
            return str(name)
    return None


def _infer_field_type(value: Any) -> FieldType | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return FieldType.INTEGER
    if isinstance(value, float):
        return FieldType.DOUBLE
    if isinstance(value, (datetime, date)):
        return FieldType.DATE
    return None


def format_field_value(value: Any, field_type: Any = None, domain: Mapping[Any, str] | None = None) -> str:
    """Convert a raw attribute value into display text.

    *field_type* is the declared remote type; when it is missing the type is
    inferred from the Python value.  A coded-value *domain* hit wins over
    type-based formatting.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return ""

    mapped = lookup_domain(value, domain)
    if mapped is not None:
        return mapped

    kind = normalize_field_type(field_type) or _infer_field_type(value)

    if kind in DATE_TYPES:
        return format_date_value(value)

    if kind in DECIMAL_TYPES:
        number = try_parse_numeric(value)
        if number is None:
            return str(value)
        if number.is_integer():
            return f"{int(number):,}"
        return format_number(number)

    if kind in INTEGER_TYPES:
        number = try_parse_numeric(value)
        if number is None:
            return str(value)
        return f"{round_half_up(number):,}"

    return str(value)


# ── Statistic formatter ────────────────────────────────────────────────────


def format_stat_value(value: Any, fmt: StatisticFormat | None = None) -> str:
    """Format an evaluated statistic according to its :class:`StatisticFormat`."""
    fmt = fmt or StatisticFormat()
    if value is None or (isinstance(value, str) and not value.strip()):
        return fmt.null_value

    kind = fmt.format
    number = try_parse_numeric(value)

    if kind == FormatType.TEXT:
        text = str(value)
    elif kind == FormatType.DATE:
        parsed = parse_date(value)
        text = format_date_pattern(parsed, fmt.date_format) if parsed else str(value)
    elif kind == FormatType.CURRENCY and number is not None:
        text = format_currency(number, fmt.currency, 0 if fmt.decimals is None else fmt.decimals)
    elif kind == FormatType.PERCENT and number is not None:
        places = 2 if fmt.decimals is None else max(0, fmt.decimals)
        text = format_number(number * 100, places, thousands=False) + "%"
    elif kind == FormatType.NUMBER and number is not None:
        text = format_number(number, fmt.decimals, thousands=fmt.thousands_separator)
    elif kind == FormatType.AUTO and number is not None and not isinstance(value, str):
        text = format_number(number, fmt.decimals, thousands=fmt.thousands_separator)
    else:
        text = str(value)

    return f"{fmt.prefix}{text}{fmt.suffix}"
