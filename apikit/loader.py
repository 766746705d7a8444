"""Loading built-in error definitions from YAML."""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from apikit.errors import ERROR_LANG_PACK, ErrAttr
from apikit.locale import LangPackage, Tag

log = logging.getLogger(__name__)


def _to_int(value: object) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def collect_builtin_errors(data: bytes | str) -> None:
    """Register every error described in a YAML document."""
    raw = yaml.safe_load(data) or {}
    if not isinstance(raw, dict):
        raise ValueError("error document must be a mapping")
    http_status = _to_int(raw.get("http_status", 0))
    log.info("collecting error...")
    for key, val in (raw.get("errors") or {}).items():
        val = val or {}
        log.info("registering: %s", key)
        ERROR_LANG_PACK[str(key)] = ErrAttr(
            http_status=http_status,
            code=_to_int(val.get("code")),
            messages=[
                LangPackage(Tag.ENGLISH, str(val.get(Tag.ENGLISH.value, "") or "")),
                LangPackage(Tag.BAHASA, str(val.get(Tag.BAHASA.value, "") or "")),
            ],
        )
    log.info("built-in error load completed.")


def load_yaml_file(filename: str, base_dir: str | Path) -> None:
    """Read ``filename`` from ``base_dir`` and register its errors."""
    log.info("load built-in error file: %s", filename)
    collect_builtin_errors(Path(base_dir, filename).read_bytes())