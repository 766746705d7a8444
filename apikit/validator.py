"""Rule registry and dataclass validation driven by field metadata.

A field is validated according to ``metadata["validation"]``, a comma
separated list of rules such as ``"required,min=3"``. Errors are reported
under ``metadata["json"]`` (up to its first comma) or the field name.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import Field, fields, is_dataclass
from typing import Any

from apikit.errors import AppError, Errors
from apikit.rules import (
    alphabet_rule,
    alphanum_rule,
    date_rule,
    datetime_rule,
    digit_rule,
    email_rule,
    max_rule,
    maxlen_rule,
    min_rule,
    minlen_rule,
    required_rule,
)

RuleFunc = Callable[[Any, str], None]

_REJECTIONS = (AppError, Errors, ValueError, TypeError)

_validators: dict[str, RuleFunc] = {}
_lock = threading.RLock()


def register_validator(name: str, fn: RuleFunc) -> None:
    """Register ``fn`` as the rule called ``name``, replacing any earlier one."""
    with _lock:
        _validators[name] = fn


def get_validator(name: str) -> RuleFunc | None:
    """Return the rule called ``name``, or None when none is registered."""
    with _lock:
        return _validators.get(name)


def _rule_contains(rules: list[str], target: str) -> bool:
    return any(
        rule.strip() == target or rule.strip().startswith(target + "=")
        for rule in rules
    )


def _field_name(f: Field) -> str:
    json_name = f.metadata.get("json", "")
    if not json_name or json_name == "-":
        return f.name
    return json_name.split(",")[0]


def _apply(fn: RuleFunc, value: Any, param: str, errors: Errors, name: str) -> None:
    try:
        fn(value, param)
    except _REJECTIONS as exc:
        errors[name] = exc


def validate_struct(dest: Any) -> None:
    """Validate a dataclass instance; raise Errors naming each failing field."""
    if not is_dataclass(dest) or isinstance(dest, type):
        raise TypeError(f"expected a dataclass instance, got {type(dest).__name__}")

    errors = Errors()
    for f in fields(dest):
        if f.name.startswith("_"):
            continue
        rules = str(f.metadata.get("validation", "")).split(",")
        name = _field_name(f)
        value = getattr(dest, f.name)

        if value is None:
            if _rule_contains(rules, "required"):
                fn = get_validator("required")
                if fn is not None:
                    _apply(fn, None, "", errors, name)
            continue

        for rule in rules:
            if name in errors:
                break
            rule_name, _, param = rule.strip().partition("=")
            fn = get_validator(rule_name)
            if fn is None:
                continue
            _apply(fn, value, param, errors, name)

    if errors:
        raise errors


for _name, _fn in (
    ("required", required_rule),
    ("minlen", minlen_rule),
    ("maxlen", maxlen_rule),
    ("email", email_rule),
    ("digit", digit_rule),
    ("alphabet", alphabet_rule),
    ("alphanum", alphanum_rule),
    ("min", min_rule),
    ("max", max_rule),
    ("date", date_rule),
    ("datetime", datetime_rule),
):
    register_validator(_name, _fn)