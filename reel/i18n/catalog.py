"""
Translation catalog — TOML message files keyed by dotted names.

Each locale lives in locales/<code>.toml. Nested tables flatten into
dotted keys, so

    [content.field]
    name = "Name: {name}"

is looked up as "content.field.name". Placeholders use str.format
syntax and are filled from the keyword arguments to render().

Lookup never fails: missing key in the requested language falls back to
the default language, then to the key itself.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from reel.core.errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGE = "en"
LOCALES_DIR = Path(__file__).parent / "locales"


class _Blank(dict):
    """format_map helper; unknown placeholders stay as written."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def normalize_language(code: str) -> str:
    """ "fa-IR" → "fa", "EN_us" → "en", "" → "". """
    if not code:
        return ""
    return code.replace("_", "-").split("-")[0].strip().lower()


class TranslationCatalog:
    """
    Usage:
        catalog = TranslationCatalog.load()
        catalog.render("fa", "content.field.year", year=2014)
        catalog.render("xx", "button.mute")   # falls back to English
    """

    def __init__(
        self,
        messages: dict[str, dict[str, str]],
        default_language: str = DEFAULT_LANGUAGE,
    ) -> None:
        if default_language not in messages:
            raise ConfigError(
                f"Default language '{default_language}' has no message file"
            )
        self._messages = messages
        self._default = default_language

    @classmethod
    def load(
        cls,
        locales_dir: Path | None = None,
        default_language: str = DEFAULT_LANGUAGE,
    ) -> TranslationCatalog:
        """Load every <code>.toml under locales_dir."""
        try:
            import tomllib
        except ImportError:
            import tomli as tomllib  # type: ignore[no-redef]

        directory = locales_dir or LOCALES_DIR
        messages: dict[str, dict[str, str]] = {}
        for path in sorted(directory.glob("*.toml")):
            try:
                with open(path, "rb") as f:
                    data = tomllib.load(f)
            except Exception as e:
                raise ConfigError(f"Failed to load translations from {path}: {e}") from e
            messages[path.stem] = _flatten(data)
            logger.debug(f"Loaded {len(messages[path.stem])} messages for '{path.stem}'")

        return cls(messages, default_language=default_language)

    @property
    def default_language(self) -> str:
        return self._default

    @property
    def languages(self) -> list[str]:
        return sorted(self._messages)

    def is_supported(self, code: str) -> bool:
        return normalize_language(code) in self._messages

    def detect_language(self, code: str) -> str:
        """Map a client language code to a supported one, else the default."""
        normalized = normalize_language(code)
        return normalized if normalized in self._messages else self._default

    def render(self, language: str, key: str, **data: Any) -> str:
        template = self._lookup(normalize_language(language), key)
        if template is None:
            return key
        if not data:
            return template
        try:
            return template.format_map(_Blank(data))
        except (ValueError, IndexError) as e:
            logger.warning(f"Bad template for '{key}': {e}")
            return template

    def _lookup(self, language: str, key: str) -> str | None:
        table = self._messages.get(language)
        if table is not None and key in table:
            return table[key]
        return self._messages[self._default].get(key)


def _flatten(data: dict[str, Any], prefix: str = "") -> dict[str, str]:
    flat: dict[str, str] = {}
    for key, value in data.items():
        name = f"{prefix}.{key}" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        else:
            flat[name] = str(value)
    return flat
