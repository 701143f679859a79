"""Options provider for product attribute values."""

from __future__ import annotations

import logging
from typing import Any

from ruleset_engine.catalog.attribute_rules import VARIANT_VALUE_DATA_SOURCE
from ruleset_engine.database.models import ProductVariantAttributeValue
from ruleset_engine.database.repository import RuleRepository
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.options import (
    RuleOption,
    RuleOptionsContext,
    RuleOptionsProvider,
    RuleOptionsRequestReason,
    RuleOptionsResult,
)

logger = logging.getLogger(__name__)


def _value_ids(value: Any) -> list[int]:
    if value is None:
        return []
    items = value if isinstance(value, (list, tuple, set)) else [value]
    ids: list[int] = []
    for item in items:
        try:
            ids.append(int(item))
        except (TypeError, ValueError):
            logger.debug(f"Ignoring non-numeric attribute value id {item!r}")
    return ids


class VariantValueOptionsProvider(RuleOptionsProvider):
    """Offers the values of a catalog attribute's product mappings.

    The option text is the value's localized name, the hint the localized
    name of the catalog attribute it belongs to.
    """

    def __init__(self, repository: RuleRepository, localizer: Localizer | None = None):
        self.repository = repository
        self.localizer = localizer or Localizer()

    def matches(self, data_source: str) -> bool:
        return data_source == VARIANT_VALUE_DATA_SOURCE

    async def get_options(self, context: RuleOptionsContext) -> RuleOptionsResult:
        if context.reason == RuleOptionsRequestReason.SELECTED_DISPLAY_NAMES:
            values = await self.repository.find_attribute_values(
                _value_ids(context.expression.value)
            )
            return RuleOptionsResult(
                options=[self._to_option(v, context.language) for v in values]
            )

        descriptor = context.expression.descriptor
        parent_id = descriptor.metadata.get("parent_id") if descriptor else None
        if parent_id is None:
            return RuleOptionsResult()

        page = await self.repository.list_attribute_values(
            int(parent_id),
            context.page_index,
            context.page_size,
            search=context.search_term,
        )
        return RuleOptionsResult(
            options=[self._to_option(v, context.language) for v in page],
            has_more_data=page.has_next_page,
        )

    def _to_option(
        self, value: ProductVariantAttributeValue, language: str | None
    ) -> RuleOption:
        variant_attribute = value.variant_attribute
        attribute = variant_attribute.product_attribute if variant_attribute else None

        return RuleOption(
            value=str(value.id),
            text=self.localizer.localized_name(value, language),
            hint=self.localizer.localized_name(attribute, language) if attribute else None,
        )
