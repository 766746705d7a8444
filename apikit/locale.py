"""Language tags and localized message packages."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Tag(str, Enum):
    """A supported language tag."""

    BAHASA = "id"
    ENGLISH = "en"

    def __str__(self) -> str:
        return self.value


DEFAULT_LOCALE = Tag.ENGLISH


@dataclass(frozen=True)
class LangPackage:
    """A message in one language."""

    tag: Tag
    message: str


_lang_packages: dict[str, LangPackage] = {}


def supported_tags() -> list[Tag]:
    """Return the language tags the application understands."""
    return [Tag.BAHASA, Tag.ENGLISH]


def is_supported(tag: str) -> bool:
    """Tell whether ``tag`` is one of the supported language tags."""
    return tag in supported_tags()


def register_lang_error_package(key: str, tag: Tag, message: str) -> None:
    """Store a localized message under ``key``, replacing any earlier one."""
    _lang_packages[key] = LangPackage(tag=Tag(tag), message=message)