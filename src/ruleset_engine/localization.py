"""String resources and localized entity names.

Resources are looked up by key in the requested language, then in the
default language, and finally fall back to the key itself. Entity names use
the entity's `localized_names` JSON map and fall back to its raw `name`.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

logger = logging.getLogger(__name__)

DEFAULT_RESOURCES: dict[str, dict[str, str]] = {
    "en": {
        "rules.invalid_descriptor": (
            "Invalid rule. This rule is no longer supported and should be deleted."
        ),
        "catalog.product_attributes": "Product attributes",
    },
    "de": {
        "rules.invalid_descriptor": (
            "Ungültige Regel. Diese Regel wird nicht mehr unterstützt "
            "und sollte gelöscht werden."
        ),
        "catalog.product_attributes": "Produktmerkmale",
    },
}


class Localizer:
    """Looks up localized strings and entity names."""

    def __init__(
        self,
        resources: Mapping[str, Mapping[str, str]] | None = None,
        default_language: str = "en",
    ):
        self.resources = resources if resources is not None else DEFAULT_RESOURCES
        self.default_language = default_language

    def localize(self, key: str, language: str | None = None) -> str:
        """Get the resource string for a key."""
        for lang in (language, self.default_language):
            if lang and key in self.resources.get(lang, {}):
                return self.resources[lang][key]

        logger.debug(f"Missing string resource '{key}' for language {language}")
        return key

    def localized_name(self, entity: Any, language: str | None = None) -> str:
        """Get the localized name of an entity, falling back to its raw name."""
        names = getattr(entity, "localized_names", None)
        language = language or self.default_language

        if isinstance(names, Mapping):
            value = names.get(language)
            if isinstance(value, str) and value.strip():
                return value

        return getattr(entity, "name", None) or ""
