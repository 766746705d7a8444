"""String-backed field types for dates, datetimes, floats and integers."""

from __future__ import annotations

import json
import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from apikit.builtin import field_unsupported_type

_INT_RE = re.compile(r"[+-]?[0-9]+")
_INT64_MIN, _INT64_MAX = -(2**63), 2**63 - 1

_DATE_FORMAT = "%Y-%m-%d"
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")
_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"
_DATETIME_RE = re.compile(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}")


def _format_g(value: float) -> str:
    """Format a float with the shortest digits, switching to exponent form."""
    if value == 0:
        return "-0" if math.copysign(1.0, value) < 0 else "0"
    number = Decimal(repr(value)).normalize()
    sign, digit_tuple, exponent = number.as_tuple()
    digits = "".join(map(str, digit_tuple))
    exp10 = len(digits) + exponent - 1
    if -4 <= exp10 < 6:
        return format(number, "f")
    mantissa = digits[0] + ("." + digits[1:] if len(digits) > 1 else "")
    return f"{'-' if sign else ''}{mantissa}e{'-' if exp10 < 0 else '+'}{abs(exp10):02d}"


def _parse_json(data: str | bytes) -> Any:
    try:
        return json.loads(data)
    except ValueError as exc:
        raise field_unsupported_type() from exc


def _parse_int(text: str) -> int:
    if not _INT_RE.fullmatch(text) or not _INT64_MIN <= int(text) <= _INT64_MAX:
        raise ValueError(f"invalid integer: {text!r}")
    return int(text)


def _parse_float(text: str) -> float:
    if text != text.strip() or "_" in text:
        raise ValueError(f"invalid float: {text!r}")
    number = float(text)
    if math.isinf(number) and "inf" not in text.lower():
        raise ValueError(f"float out of range: {text!r}")
    return number


def _decode(text: str | bytes) -> str:
    return text.decode() if isinstance(text, (bytes, bytearray)) else str(text)


def _json_text(data: str | bytes) -> str:
    value = _parse_json(data)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise field_unsupported_type()
    return value


def _scan_time_text(value: Any, scan_type: type, fmt: str) -> str:
    if isinstance(value, scan_type):
        return value.strftime(fmt)
    if not isinstance(value, (str, bytes, bytearray)):
        raise field_unsupported_type()
    return _decode(value)


def _parse_time(text: str, pattern: re.Pattern[str], fmt: str, kind: str) -> datetime:
    if not pattern.fullmatch(text):
        raise ValueError(f"invalid {kind}: {text!r}")
    return datetime.strptime(text, fmt)


class Date(str):
    """A calendar date kept as ``YYYY-MM-DD`` text."""

    @classmethod
    def from_json(cls, data: str | bytes) -> Date:
        return cls(_json_text(data))

    @classmethod
    def from_text(cls, text: str | bytes) -> Date:
        return cls(_decode(text))

    @classmethod
    def scan(cls, value: Any) -> Date:
        return cls(_scan_time_text(value, date, _DATE_FORMAT))

    def to_time(self) -> datetime:
        """Parse the text; raise ValueError when malformed."""
        return _parse_time(str(self), _DATE_RE, _DATE_FORMAT, "date")

    def value(self) -> str:
        return str(self)


class Datetime(str):
    """A date and time kept as ``YYYY-MM-DD HH:MM:SS`` text."""

    @classmethod
    def from_json(cls, data: str | bytes) -> Datetime:
        return cls(_json_text(data))

    @classmethod
    def from_text(cls, text: str | bytes) -> Datetime:
        return cls(_decode(text))

    @classmethod
    def scan(cls, value: Any) -> Datetime:
        return cls(_scan_time_text(value, datetime, _DATETIME_FORMAT))

    def to_time(self) -> datetime:
        """Parse the text; raise ValueError when malformed."""
        return _parse_time(str(self), _DATETIME_RE, _DATETIME_FORMAT, "datetime")

    def value(self) -> str:
        return str(self)


class Float(str):
    """A floating-point number kept as text."""

    @classmethod
    def from_json(cls, data: str | bytes) -> Float:
        value = _parse_json(data)
        if value is None:
            return cls("0")
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            number = float(value)
            if math.isfinite(number):
                return cls(_format_g(number))
        raise field_unsupported_type()

    @classmethod
    def from_text(cls, text: str | bytes) -> Float:
        s = _decode(text)
        try:
            _parse_float(s)
        except ValueError as exc:
            raise field_unsupported_type() from exc
        return cls(s)

    @classmethod
    def scan(cls, value: Any) -> Float:
        if isinstance(value, float):
            return cls(_format_g(value))
        if not isinstance(value, (str, bytes, bytearray)):
            raise field_unsupported_type()
        return cls(_decode(value))

    def to_float(self) -> float:
        """Return the number, or 0.0 when the text is not a number."""
        try:
            return _parse_float(self)
        except ValueError:
            return 0.0

    def value(self) -> float:
        """Return the number; raise ValueError when the text is not a number."""
        return _parse_float(self)


class Integer(str):
    """A 64-bit integer kept as text."""

    @classmethod
    def from_json(cls, data: str | bytes) -> Integer:
        value = _parse_json(data)
        if value is None:
            return cls("0")
        if isinstance(value, str):
            return cls(value)
        if isinstance(value, int) and not isinstance(value, bool):
            if _INT64_MIN <= value <= _INT64_MAX:
                return cls(str(value))
        raise field_unsupported_type()

    @classmethod
    def from_text(cls, text: str | bytes) -> Integer:
        s = _decode(text)
        try:
            _parse_int(s)
        except ValueError as exc:
            raise field_unsupported_type() from exc
        return cls(s)

    @classmethod
    def scan(cls, value: Any) -> Integer:
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(str(value))
        if not isinstance(value, (str, bytes, bytearray)):
            raise field_unsupported_type()
        return cls(_decode(value))

    def to_int(self) -> int:
        """Return the number, clamped to 64 bits, or 0 when not a number."""
        if not _INT_RE.fullmatch(self):
            return 0
        return max(_INT64_MIN, min(_INT64_MAX, int(self)))

    def value(self) -> int:
        """Return the number; raise ValueError when the text is not a number."""
        return _parse_int(self)