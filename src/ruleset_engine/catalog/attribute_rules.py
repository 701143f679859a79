"""Rules deciding which product attributes are offered.

A product variant attribute may carry a rule set. The attribute is offered
only if the rule set matches the values the customer selected for the other
attributes of the product. Each catalog attribute contributes one condition
kind ("variant value of attribute X is one of ...").

## How Matching Works

1. An attribute without a rule set always matches
2. The rule set is compiled into an expression group
3. Each leaf reads the selected value ids of its catalog attribute
   (`parent_id` descriptor metadata) and compares them with its own ids

Example:
    ```python
    provider = AttributeRuleProvider(repository, rule_service, processors)
    context = AttributeRuleContext(
        attribute=size_attribute,
        selected_values={color_attribute_id: [red_value_id]},
    )
    offered = await provider.rule_matches(context)
    ```
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ruleset_engine.config import Settings, get_settings
from ruleset_engine.database.models import ProductVariantAttribute
from ruleset_engine.database.repository import RuleRepository
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.descriptors import (
    DescriptorCache,
    RemoteRuleValueSelectList,
    RuleDescriptor,
    RuleOperator,
    RuleScope,
    RuleType,
)
from ruleset_engine.rules.expressions import (
    LogicalRuleOperator,
    RuleExpression,
    RuleExpressionGroup,
)
from ruleset_engine.rules.processors import ProcessorRegistry, RuleProcessor
from ruleset_engine.rules.provider import RuleProviderBase
from ruleset_engine.rules.service import RuleService

logger = logging.getLogger(__name__)

VARIANT_VALUE_PROCESSOR = "variant_value"
VARIANT_VALUE_DATA_SOURCE = "variant_value"
ATTRIBUTE_GROUP_KEY = "catalog.product_attributes"


@dataclass
class AttributeRuleContext:
    """Runtime data an attribute rule is evaluated against.

    Attributes:
        attribute: The attribute whose visibility is being decided
        selected_values: Selected value ids keyed by catalog attribute id
        product_id: Product the attribute belongs to
    """

    attribute: ProductVariantAttribute | None
    selected_values: dict[int, list[int]] = field(default_factory=dict)
    product_id: int | None = None

    def selected_for(self, product_attribute_id: int) -> list[int]:
        """Get the selected value ids of a catalog attribute."""
        return list(self.selected_values.get(product_attribute_id, []))


class VariantValueRule(RuleProcessor[AttributeRuleContext]):
    """Matches the selected values of one catalog attribute against a list."""

    async def match(
        self, context: AttributeRuleContext, expression: RuleExpression
    ) -> bool:
        descriptor = expression.descriptor
        parent_id = descriptor.metadata.get("parent_id") if descriptor else None
        if parent_id is None:
            return False

        selected = context.selected_for(int(parent_id))
        return expression.operator.match(selected, expression.value)


def register_attribute_processors(registry: ProcessorRegistry) -> ProcessorRegistry:
    """Register the processors of the product attribute scope."""
    registry.register(VARIANT_VALUE_PROCESSOR, VariantValueRule)
    return registry


class AttributeRuleProvider(RuleProviderBase[AttributeRuleContext]):
    """Rule provider of the product attribute scope."""

    def __init__(
        self,
        repository: RuleRepository,
        rule_service: RuleService,
        processors: ProcessorRegistry,
        descriptor_cache: DescriptorCache | None = None,
        localizer: Localizer | None = None,
        settings: Settings | None = None,
    ):
        super().__init__(RuleScope.PRODUCT_ATTRIBUTE, processors, descriptor_cache)
        settings = settings or get_settings()
        self.repository = repository
        self.rule_service = rule_service
        self.localizer = localizer or Localizer(default_language=settings.default_language)
        self.language = settings.default_language
        self.page_size = settings.descriptor_page_size

    async def load_descriptors(self) -> list[RuleDescriptor]:
        """Build one descriptor per catalog attribute.

        The catalog is read page by page in display order.
        """
        descriptors: list[RuleDescriptor] = []
        page_index = 0

        while True:
            page = await self.repository.list_attributes(page_index, self.page_size)
            for attribute in page:
                descriptors.append(
                    RuleDescriptor(
                        scope=self.scope,
                        name=f"variant{attribute.id}",
                        display_name=self.localizer.localized_name(attribute, self.language),
                        group_key=ATTRIBUTE_GROUP_KEY,
                        rule_type=RuleType.INT_ARRAY,
                        select_list=RemoteRuleValueSelectList(
                            data_source=VARIANT_VALUE_DATA_SOURCE, multiple=True
                        ),
                        operators=(
                            RuleOperator.IN,
                            RuleOperator.NOT_IN,
                            RuleOperator.ALL_IN,
                            RuleOperator.NOT_ALL_IN,
                        ),
                        processor=VARIANT_VALUE_PROCESSOR,
                        metadata={"parent_id": attribute.id, "value_type": "simple"},
                    )
                )

            if not page.has_next_page:
                break
            page_index += 1

        logger.info(
            f"Built {len(descriptors)} attribute rule descriptors "
            f"from {page_index + 1} catalog page(s)"
        )
        return descriptors

    async def create_expression_group(
        self,
        attribute: ProductVariantAttribute,
        include_hidden: bool = False,
    ) -> RuleExpressionGroup | None:
        """Compile and annotate the rule set of an attribute for display.

        An attribute without a rule set gets an empty group.
        """
        if attribute.rule_set_id is None:
            return self.visit_rule_set(None)

        group = await self.rule_service.create_expression_group(
            attribute.rule_set_id, self, include_hidden
        )
        await self.rule_service.apply_metadata(group)
        return group

    async def rule_matches(
        self,
        context: AttributeRuleContext,
        logical_operator: LogicalRuleOperator | None = None,
    ) -> bool:
        """Check whether an attribute should be offered.

        Args:
            context: Attribute and current selection
            logical_operator: Overrides the rule set's own logical operator

        Returns:
            True if the attribute has no (active) rule set or the rule set matches
        """
        attribute = context.attribute
        if attribute is None or attribute.rule_set_id is None:
            return True

        group = await self.rule_service.create_expression_group(
            attribute.rule_set_id, self
        )
        if group is None or not group.expressions:
            return True

        if logical_operator is not None and logical_operator != group.logical_operator:
            group = group.model_copy(update={"logical_operator": logical_operator})

        return await self.match(context, group)
