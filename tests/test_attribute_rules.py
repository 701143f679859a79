"""Tests for product attribute rules."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import InMemoryRuleRepository, make_catalog_attribute, make_rule, make_rule_set
from ruleset_engine.catalog import (
    AttributeRuleContext,
    AttributeRuleProvider,
    VariantValueOptionsProvider,
    VariantValueRule,
)
from ruleset_engine.catalog.attribute_rules import (
    ATTRIBUTE_GROUP_KEY,
    VARIANT_VALUE_DATA_SOURCE,
    VARIANT_VALUE_PROCESSOR,
)
from ruleset_engine.config import Settings
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.descriptors import (
    DescriptorCache,
    RemoteRuleValueSelectList,
    RuleDescriptor,
    RuleOperator,
    RuleScope,
    RuleType,
)
from ruleset_engine.rules.expressions import LogicalRuleOperator, RuleExpression
from ruleset_engine.rules.options import (
    RuleOptionsContext,
    RuleOptionsRequestReason,
)
from ruleset_engine.rules.service import RuleService


def catalog_provider(
    repository: InMemoryRuleRepository,
    processors,
    **settings_overrides,
) -> AttributeRuleProvider:
    settings = Settings(database_url="sqlite+aiosqlite:///:memory:", **settings_overrides)
    return AttributeRuleProvider(
        repository,
        RuleService(repository, settings=settings),
        processors,
        descriptor_cache=DescriptorCache(),
        settings=settings,
    )


class TestAttributeDescriptors:
    """Tests for descriptors built from the attribute catalog."""

    @pytest.mark.asyncio
    async def test_catalog_is_read_page_by_page(self, processors):
        """Test that 2500 catalog rows at 1000 per page take three fetches."""
        repository = InMemoryRuleRepository()
        repository.catalog.extend(
            make_catalog_attribute(i, f"Attribute {i}", display_order=i) for i in range(1, 2501)
        )
        provider = catalog_provider(repository, processors, descriptor_page_size=1000)

        descriptors = await provider.get_descriptors()

        assert repository.list_attributes_calls == [(0, 1000), (1, 1000), (2, 1000)]
        assert len(descriptors) == 2500
        assert all(d.metadata["parent_id"] == int(d.name[len("variant"):]) for d in descriptors)

    @pytest.mark.asyncio
    async def test_full_last_page_stops(self, processors):
        repository = InMemoryRuleRepository()
        repository.catalog.extend(make_catalog_attribute(i, f"A{i}") for i in range(1, 11))
        provider = catalog_provider(repository, processors, descriptor_page_size=10)

        descriptors = await provider.get_descriptors()

        assert len(descriptors) == 10
        assert repository.list_attributes_calls == [(0, 10)]

    @pytest.mark.asyncio
    async def test_descriptors_are_cached_until_invalidated(
        self, attribute_provider, repository
    ):
        await attribute_provider.get_descriptors()
        await attribute_provider.get_descriptors()
        assert len(repository.list_attributes_calls) == 1

        repository.catalog.append(make_catalog_attribute(3, "Material", 3))
        attribute_provider.invalidate_descriptors()
        descriptors = await attribute_provider.get_descriptors()

        assert len(repository.list_attributes_calls) == 2
        assert "variant3" in descriptors

    @pytest.mark.asyncio
    async def test_descriptor_shape(self, attribute_provider):
        descriptors = await attribute_provider.get_descriptors()

        assert [d.name for d in descriptors] == ["variant1", "variant2"]
        color = descriptors.find("variant1")
        assert color.display_name == "Color"
        assert color.group_key == ATTRIBUTE_GROUP_KEY
        assert color.rule_type == RuleType.INT_ARRAY
        assert color.processor == VARIANT_VALUE_PROCESSOR
        assert color.operators == (
            RuleOperator.IN,
            RuleOperator.NOT_IN,
            RuleOperator.ALL_IN,
            RuleOperator.NOT_ALL_IN,
        )
        assert color.select_list == RemoteRuleValueSelectList(
            data_source=VARIANT_VALUE_DATA_SOURCE, multiple=True
        )
        assert color.metadata == {"parent_id": 1, "value_type": "simple"}

    @pytest.mark.asyncio
    async def test_display_names_are_localized(self, repository, processors):
        provider = catalog_provider(repository, processors, default_language="de")

        descriptors = await provider.get_descriptors()

        assert descriptors.find("variant1").display_name == "Farbe"
        assert descriptors.find("variant2").display_name == "Size"


class TestVariantValueRule:
    """Tests for the variant value processor."""

    @pytest.mark.asyncio
    async def test_reads_selection_of_parent_attribute(self):
        expression = RuleExpression(
            id=1,
            descriptor=RuleDescriptor(
                scope=RuleScope.PRODUCT_ATTRIBUTE,
                name="variant1",
                rule_type=RuleType.INT_ARRAY,
                processor=VARIANT_VALUE_PROCESSOR,
                metadata={"parent_id": 1},
            ),
            operator=RuleOperator.IN,
            value=[1000],
        )
        rule = VariantValueRule()

        assert await rule.match(AttributeRuleContext(None, {1: [1000]}), expression) is True
        assert await rule.match(AttributeRuleContext(None, {2: [1000]}), expression) is False

    @pytest.mark.asyncio
    async def test_without_parent_id_does_not_match(self):
        expression = RuleExpression(
            id=1,
            descriptor=RuleDescriptor(
                scope=RuleScope.PRODUCT_ATTRIBUTE,
                name="variant1",
                processor=VARIANT_VALUE_PROCESSOR,
            ),
            operator=RuleOperator.NOT_IN,
            value=[1000],
        )

        assert await VariantValueRule().match(AttributeRuleContext(None), expression) is False


class TestRuleMatches:
    """Tests for deciding whether an attribute is offered."""

    @pytest.mark.asyncio
    async def test_attribute_without_rule_set_is_not_compiled(
        self, repository, processors, color_attribute
    ):
        rule_service = MagicMock()
        rule_service.create_expression_group = AsyncMock()
        provider = AttributeRuleProvider(repository, rule_service, processors)

        assert await provider.rule_matches(AttributeRuleContext(color_attribute)) is True
        assert await provider.rule_matches(AttributeRuleContext(None)) is True
        rule_service.create_expression_group.assert_not_called()

    @pytest.mark.asyncio
    async def test_matches_selection(self, attribute_provider, size_attribute):
        red = AttributeRuleContext(size_attribute, {1: [1000]})
        blue = AttributeRuleContext(size_attribute, {1: [1001]})
        nothing = AttributeRuleContext(size_attribute)

        assert await attribute_provider.rule_matches(red) is True
        assert await attribute_provider.rule_matches(blue) is False
        assert await attribute_provider.rule_matches(nothing) is False

    @pytest.mark.asyncio
    async def test_logical_operator_override(
        self, attribute_provider, repository, size_attribute
    ):
        repository.add_rule_set(
            make_rule_set(
                1,
                [
                    make_rule(11, "variant1", "in", "1000"),
                    make_rule(12, "variant1", "in", "1001"),
                ],
            )
        )
        red = AttributeRuleContext(size_attribute, {1: [1000]})

        assert await attribute_provider.rule_matches(red) is False
        assert await attribute_provider.rule_matches(red, LogicalRuleOperator.OR) is True
        assert await attribute_provider.rule_matches(red, LogicalRuleOperator.AND) is False

    @pytest.mark.asyncio
    async def test_inactive_rule_set_matches(self, attribute_provider, repository, size_attribute):
        repository.add_rule_set(
            make_rule_set(1, [make_rule(11, "variant1", "in", "1000")], is_active=False)
        )

        assert await attribute_provider.rule_matches(AttributeRuleContext(size_attribute)) is True

    @pytest.mark.asyncio
    async def test_missing_rule_set_matches(self, attribute_provider, repository, size_attribute):
        repository.rule_sets.clear()

        assert await attribute_provider.rule_matches(AttributeRuleContext(size_attribute)) is True

    @pytest.mark.asyncio
    async def test_rule_set_without_readable_rows_matches(
        self, attribute_provider, repository, size_attribute
    ):
        repository.add_rule_set(make_rule_set(1, [make_rule(11, "variant1", "eq", "1000")]))

        assert await attribute_provider.rule_matches(AttributeRuleContext(size_attribute)) is True


class TestAttributeExpressionGroup:
    """Tests for compiling attribute rule sets for display."""

    @pytest.mark.asyncio
    async def test_attribute_without_rule_set(self, attribute_provider, color_attribute):
        group = await attribute_provider.create_expression_group(color_attribute)

        assert group.id == 0
        assert group.expressions == []
        assert group.logical_operator == LogicalRuleOperator.AND

    @pytest.mark.asyncio
    async def test_group_is_annotated(self, attribute_provider, size_attribute):
        group = await attribute_provider.create_expression_group(size_attribute)

        (expression,) = group.expressions
        assert expression.metadata["selected_items"]["1000"].text == "Red"


class TestVariantValueOptionsProvider:
    """Tests for attribute value options."""

    def options_context(self, reason, value, **kwargs) -> RuleOptionsContext:
        return RuleOptionsContext(
            reason=reason,
            expression=RuleExpression(
                id=1,
                descriptor=RuleDescriptor(
                    scope=RuleScope.PRODUCT_ATTRIBUTE,
                    name="variant1",
                    rule_type=RuleType.INT_ARRAY,
                    select_list=RemoteRuleValueSelectList(data_source=VARIANT_VALUE_DATA_SOURCE),
                    processor=VARIANT_VALUE_PROCESSOR,
                    metadata={"parent_id": 1},
                ),
                operator=RuleOperator.IN,
                value=value,
            ),
            **kwargs,
        )

    def test_matches_data_source(self, repository):
        provider = VariantValueOptionsProvider(repository)

        assert provider.matches(VARIANT_VALUE_DATA_SOURCE) is True
        assert provider.matches("customer_role") is False

    @pytest.mark.asyncio
    async def test_selected_display_names(self, repository):
        provider = VariantValueOptionsProvider(repository, Localizer())
        context = self.options_context(
            RuleOptionsRequestReason.SELECTED_DISPLAY_NAMES, [1001, 9999], language="de"
        )

        result = await provider.get_options(context)

        assert [(o.value, o.text, o.hint) for o in result.options] == [("1001", "Blau", "Farbe")]
        assert repository.find_attribute_values_calls == [[1001, 9999]]
        assert context.data_source == VARIANT_VALUE_DATA_SOURCE

    @pytest.mark.asyncio
    async def test_all_options_are_paged(self, repository):
        provider = VariantValueOptionsProvider(repository, Localizer())
        first = await provider.get_options(
            self.options_context(RuleOptionsRequestReason.ALL_OPTIONS, [], page_size=1)
        )
        second = await provider.get_options(
            self.options_context(
                RuleOptionsRequestReason.ALL_OPTIONS, [], page_index=1, page_size=1
            )
        )

        assert [o.text for o in first.options] == ["Red"]
        assert first.has_more_data is True
        assert [o.text for o in second.options] == ["Blue"]
        assert second.has_more_data is False

    @pytest.mark.asyncio
    async def test_all_options_search(self, repository):
        provider = VariantValueOptionsProvider(repository, Localizer())

        result = await provider.get_options(
            self.options_context(RuleOptionsRequestReason.ALL_OPTIONS, [], search_term="bl")
        )

        assert [o.value for o in result.options] == ["1001"]
