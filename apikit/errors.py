"""Application errors carrying HTTP status, code and localized messages."""

from __future__ import annotations

import re
from collections import UserDict
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any

from apikit.locale import LangPackage, Tag

_INTERNAL = int(HTTPStatus.INTERNAL_SERVER_ERROR)
_VERB = re.compile(r"%([-+# 0]*\d*(?:\.\d+)?)([a-zA-Z%])")


@dataclass
class ErrAttr:
    """Attributes describing an error: status, code and messages."""

    http_status: int = 0
    code: int = 0
    messages: list[LangPackage] = field(default_factory=list)


ERROR_LANG_PACK: dict[str, ErrAttr] = {}


def go_format(message: str, *args: Any) -> str:
    """Format ``message`` with printf-style verbs such as ``%v`` and ``%d``."""
    remaining = iter(args)

    def repl(match: re.Match[str]) -> str:
        flags, verb = match.groups()
        if verb == "%":
            return "%"
        arg = next(remaining, _MISSING)
        if arg is _MISSING:
            return f"%!{verb}(MISSING)"
        if isinstance(arg, bool):
            return "true" if arg else "false"
        if verb == "d" and isinstance(arg, (int, float)):
            return format(int(arg), flags.lstrip("#"))
        if verb == "f" and isinstance(arg, (int, float)):
            return format(float(arg), (flags if "." in flags else flags + ".6") + "f")
        return str(arg)

    return _VERB.sub(repl, message)


_MISSING = object()


class AppError(Exception):
    """An error with an HTTP status, an application code and localized text."""

    def __init__(
        self,
        key: str,
        *,
        code: int = _INTERNAL,
        http_status: int = _INTERNAL,
        local_messages: dict[Tag, str] | None = None,
        fallback: str | None = None,
    ) -> None:
        self.key = key
        self.code = code
        self.http_status = http_status
        self.local_messages: dict[Tag, str] = dict(local_messages or {})
        self._fallback = key if fallback is None else fallback
        super().__init__(str(self))

    def __str__(self) -> str:
        return self.local_messages.get(Tag.ENGLISH, self._fallback)

    def localized_error(self, tag: str) -> str:
        """Return the message in ``tag``, or the default message."""
        return self.local_messages.get(tag, str(self))


class Errors(UserDict, Exception):
    """A mapping of field names to errors, itself an error."""

    def __str__(self) -> str:
        if not self.data:
            return ""
        parts = []
        for key in sorted(self.data):
            err = self.data[key]
            parts.append(f"{key}: ({err})" if isinstance(err, Errors) else f"{key}: {err}")
        return "; ".join(parts) + "."

    def localized_error(self, tag: str) -> dict[str, Any]:
        """Return a mapping of keys to messages localized in ``tag``."""
        return {
            key: err.localized_error(tag) if isinstance(err, (Errors, AppError)) else str(err)
            for key, err in self.data.items()
        }


def _formatted(pack: ErrAttr, args: tuple[Any, ...]) -> dict[Tag, str]:
    return {msg.tag: go_format(msg.message, *args) for msg in pack.messages}


def register_builtin_error(key: str, *args: Any) -> AppError:
    """Build a built-in error from the loaded language pack.

    Raises LookupError when ``key`` has not been loaded.
    """
    pack = ERROR_LANG_PACK.get(key)
    if pack is None:
        raise LookupError(f"error package not found: {key}")
    messages = _formatted(pack, args)
    return AppError(
        key,
        code=pack.code,
        http_status=pack.http_status,
        local_messages=messages,
        fallback=messages.get(Tag.ENGLISH, ""),
    )


def new_error(key: str, attr: ErrAttr | None = None, *args: Any) -> AppError:
    """Build an error from the language pack, or from ``attr`` when unknown."""
    pack = ERROR_LANG_PACK.get(key)
    if pack is not None:
        return AppError(
            key, code=pack.code, http_status=pack.http_status,
            local_messages=_formatted(pack, args),
        )
    if attr is None:
        return AppError(key)
    return AppError(
        key,
        code=attr.code or _INTERNAL,
        http_status=attr.http_status or _INTERNAL,
        local_messages={msg.tag: msg.message for msg in attr.messages},
    )