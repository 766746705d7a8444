"""Built-in validation rules.

A rule takes the field value and the rule parameter and raises an error
when the value is rejected; it returns nothing when the value passes.
"""

from __future__ import annotations

import math
import re
from datetime import datetime
from typing import Any

from apikit.builtin import (
    field_above_maximum,
    field_below_minimum,
    field_invalid_param,
    field_must_be_alphabet,
    field_must_be_alphanum,
    field_must_be_date,
    field_must_be_datetime,
    field_must_be_digit,
    field_must_be_email,
    field_required,
    field_unsupported_type,
)

_DIGIT_RE = re.compile(r"\d+", re.ASCII)
_ALPHANUM_RE = re.compile(r"[a-zA-Z0-9]+")
_ALPHA_RE = re.compile(r"[a-zA-Z]+")
_EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+\-]+@[a-zA-Z0-9.\-]+\.[a-zA-Z]{2,}")
_INT_RE = re.compile(r"[+-]?[0-9]+")
_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})", re.ASCII)
_DATETIME_RE = re.compile(
    r"(\d{4})-(\d{2})-(\d{2}) (\d{1,2}):(\d{2}):(\d{2})(?:[.,]\d+)?", re.ASCII
)
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1


def is_zero(value: Any) -> bool:
    """Tell whether ``value`` equals the empty value of its own type."""
    if value is None:
        return True
    try:
        empty = type(value)()
    except (TypeError, ValueError):
        return False
    try:
        return bool(value == empty)
    except (TypeError, ValueError):
        return False


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text or not text:
        raise ValueError(f"invalid float: {text!r}")
    number = float(text)
    if math.isinf(number) and "inf" not in text.lower():
        raise ValueError(f"float out of range: {text!r}")
    return number


def _atoi(text: str) -> int:
    """Parse a decimal integer, giving 0 for bad text and clamping to 64 bits."""
    if not _INT_RE.fullmatch(text):
        return 0
    return max(_INT64_MIN, min(_INT64_MAX, int(text)))


def _truncate(number: float) -> int:
    if not math.isfinite(number) or not _INT64_MIN <= number <= _INT64_MAX:
        return _INT64_MIN
    return int(number)


def _numeric(value: Any) -> float:
    """Return the number a value is compared by, or raise the type error."""
    if isinstance(value, str):
        try:
            return _parse_float(value)
        except ValueError:
            return float(len(value.encode()))
    if isinstance(value, bool):
        raise field_unsupported_type()
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return _parse_float(str(value))
    except ValueError as exc:
        raise field_unsupported_type() from exc


def _bound(param: str) -> float:
    try:
        return _parse_float(param)
    except ValueError as exc:
        raise field_invalid_param(param) from exc


def required_rule(value: Any, param: str = "") -> None:
    """Reject a missing or empty value."""
    if value is None or is_zero(value):
        raise field_required()


def min_rule(value: Any, param: str) -> None:
    """Reject numbers (or non-numeric text lengths) below ``param``."""
    minimum = _bound(param)
    if _numeric(value) < minimum:
        raise field_below_minimum(_truncate(minimum))


def max_rule(value: Any, param: str) -> None:
    """Reject numbers (or non-numeric text lengths) above ``param``."""
    maximum = _bound(param)
    if _numeric(value) > maximum:
        raise field_above_maximum(_truncate(maximum))


def minlen_rule(value: Any, param: str) -> None:
    """Reject plain strings shorter than ``param`` bytes."""
    minimum = _atoi(param)
    if type(value) is str and len(value.encode()) < minimum:
        raise field_below_minimum(minimum)


def maxlen_rule(value: Any, param: str) -> None:
    """Reject plain strings longer than ``param`` bytes."""
    maximum = _atoi(param)
    if type(value) is str and len(value.encode()) > maximum:
        raise field_above_maximum(maximum)


def email_rule(value: Any, param: str = "") -> None:
    """Reject plain strings that are not e-mail addresses."""
    if type(value) is str and not _EMAIL_RE.fullmatch(value):
        raise field_must_be_email()


def digit_rule(value: Any, param: str = "") -> None:
    """Reject anything but a plain string of decimal digits."""
    if type(value) is not str or not _DIGIT_RE.fullmatch(value):
        raise field_must_be_digit()


def alphanum_rule(value: Any, param: str = "") -> None:
    """Reject anything but a plain string of ASCII letters and digits."""
    if type(value) is not str or not _ALPHANUM_RE.fullmatch(value):
        raise field_must_be_alphanum()


def alphabet_rule(value: Any, param: str = "") -> None:
    """Reject anything but a plain string of ASCII letters."""
    if type(value) is not str or not _ALPHA_RE.fullmatch(value):
        raise field_must_be_alphabet()


def _valid_moment(pattern: re.Pattern[str], value: Any) -> bool:
    if not isinstance(value, str):
        return False
    match = pattern.fullmatch(value)
    if match is None:
        return False
    try:
        datetime(*(int(part) for part in match.groups()))
    except ValueError:
        return False
    return True


def date_rule(value: Any, param: str = "") -> None:
    """Reject text that is not a ``YYYY-MM-DD`` calendar date."""
    if not _valid_moment(_DATE_RE, value):
        raise field_must_be_date()


def datetime_rule(value: Any, param: str = "") -> None:
    """Reject text that is not a ``YYYY-MM-DD HH:MM:SS`` datetime."""
    if not _valid_moment(_DATETIME_RE, value):
        raise field_must_be_datetime()