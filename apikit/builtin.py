"""Built-in validation errors loaded from the bundled error list."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from apikit.errors import AppError, register_builtin_error
from apikit.loader import load_yaml_file

ERROR_LIST_FILE = "400_error_list.yaml"
DEFAULT_ERROR_DIR = Path("app/errors/yaml_files")


def load_builtin_errors(base_dir: str | Path = DEFAULT_ERROR_DIR) -> None:
    """Load the built-in error list from ``base_dir``."""
    load_yaml_file(ERROR_LIST_FILE, base_dir)


def field_required() -> AppError:
    return register_builtin_error("ErrFieldRequired")


def field_below_minimum(minimum: Any) -> AppError:
    return register_builtin_error("ErrFieldBelowMinimum", minimum)


def field_above_maximum(maximum: Any) -> AppError:
    return register_builtin_error("ErrFieldAboveMaximum", maximum)


def field_must_be_email() -> AppError:
    return register_builtin_error("ErrFieldMustBeEmail")


def field_must_be_digit() -> AppError:
    return register_builtin_error("ErrFieldMustBeDigit")


def field_must_be_alphanum() -> AppError:
    return register_builtin_error("ErrFieldMustBeAlphanum")


def field_must_be_alphabet() -> AppError:
    return register_builtin_error("ErrFieldMustBeAlphabet")


def field_must_be_date() -> AppError:
    return register_builtin_error("ErrFieldMustBeDate")


def field_must_be_datetime() -> AppError:
    return register_builtin_error("ErrFieldMustBeDatetime")


def field_length_below_minimum(minimum: int) -> AppError:
    return register_builtin_error("ErrFieldLengthBelowMinimum", minimum)


def field_length_above_maximum(maximum: int) -> AppError:
    return register_builtin_error("ErrFieldLengthAboveMaximum", maximum)


def field_unsupported_type() -> AppError:
    return register_builtin_error("ErrFieldUnsupportedType")


def field_invalid_param(param: Any) -> AppError:
    return register_builtin_error("ErrFieldInvalidParam", param)