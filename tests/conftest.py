"""Pytest fixtures for rule engine tests.

This module provides test fixtures that ensure:
1. No real database connections in unit tests (an in-memory repository is used)
2. Isolated test environment with controlled configuration
3. A small attribute catalog with rule sets to compile and evaluate
"""

import os
from typing import Sequence

import pytest

# Set test environment BEFORE importing application modules
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEFAULT_LANGUAGE", "en")

from ruleset_engine.catalog import (
    AttributeRuleProvider,
    VariantValueOptionsProvider,
    register_attribute_processors,
)
from ruleset_engine.config import Settings
from ruleset_engine.database.models import (
    ProductAttribute,
    ProductVariantAttribute,
    ProductVariantAttributeValue,
    Rule,
    RuleSet,
)
from ruleset_engine.database.repository import Page
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.descriptors import DescriptorCache, RuleDescriptor, RuleScope
from ruleset_engine.rules.processors import ProcessorRegistry
from ruleset_engine.rules.provider import RuleProviderBase
from ruleset_engine.rules.service import RuleService


# =============================================================================
# Test Doubles
# =============================================================================


class InMemoryRuleRepository:
    """`RuleRepository` over plain dicts, recording the calls it receives."""

    def __init__(self):
        self.rule_sets: dict[int, RuleSet] = {}
        self.attributes: dict[int, ProductVariantAttribute] = {}
        self.catalog: list[ProductAttribute] = []
        self.values: dict[int, ProductVariantAttributeValue] = {}

        self.find_rule_set_calls: list[int] = []
        self.list_attributes_calls: list[tuple[int, int]] = []
        self.find_attribute_values_calls: list[list[int]] = []

    def add_rule_set(self, rule_set: RuleSet) -> RuleSet:
        self.rule_sets[rule_set.id] = rule_set
        return rule_set

    def add_attribute(self, attribute: ProductVariantAttribute) -> ProductVariantAttribute:
        self.attributes[attribute.id] = attribute
        for value in attribute.values:
            self.values[value.id] = value
        return attribute

    async def find_rule_set(self, rule_set_id: int) -> RuleSet | None:
        self.find_rule_set_calls.append(rule_set_id)
        return self.rule_sets.get(rule_set_id)

    async def find_attribute(self, attribute_id: int) -> ProductVariantAttribute | None:
        return self.attributes.get(attribute_id)

    async def list_attributes(self, page_index: int, page_size: int) -> Page[ProductAttribute]:
        self.list_attributes_calls.append((page_index, page_size))
        ordered = sorted(self.catalog, key=lambda a: (a.display_order, a.id))
        start = page_index * page_size
        return Page(
            items=ordered[start:start + page_size],
            page_index=page_index,
            page_size=page_size,
            has_next_page=start + page_size < len(ordered),
        )

    async def find_attribute_values(
        self, value_ids: Sequence[int]
    ) -> list[ProductVariantAttributeValue]:
        self.find_attribute_values_calls.append(list(value_ids))
        return [self.values[i] for i in value_ids if i in self.values]

    async def list_attribute_values(
        self,
        product_attribute_id: int,
        page_index: int,
        page_size: int,
        search: str | None = None,
    ) -> Page[ProductVariantAttributeValue]:
        matching = [
            v
            for v in self.values.values()
            if v.variant_attribute.product_attribute_id == product_attribute_id
            and (not search or search.lower() in v.name.lower())
        ]
        matching.sort(key=lambda v: (v.display_order, v.id))
        start = page_index * page_size
        return Page(
            items=matching[start:start + page_size],
            page_index=page_index,
            page_size=page_size,
            has_next_page=start + page_size < len(matching),
        )


class StaticRuleProvider(RuleProviderBase):
    """Rule provider serving a fixed list of descriptors."""

    def __init__(
        self,
        scope: RuleScope,
        processors: ProcessorRegistry,
        descriptors: Sequence[RuleDescriptor] = (),
    ):
        super().__init__(scope, processors, DescriptorCache())
        self.descriptors = list(descriptors)
        self.load_count = 0

    async def load_descriptors(self) -> list[RuleDescriptor]:
        self.load_count += 1
        return self.descriptors


# =============================================================================
# Entity Factories
# =============================================================================


def make_rule(
    rule_id: int,
    rule_type: str,
    operator: str = "in",
    value: str | None = None,
    display_order: int = 0,
) -> Rule:
    return Rule(
        id=rule_id,
        rule_type=rule_type,
        operator=operator,
        value=value,
        display_order=display_order,
    )


def make_group_rule(rule_id: int, rule_set_id: int | str, display_order: int = 0) -> Rule:
    return make_rule(rule_id, "group", "eq", str(rule_set_id), display_order)


def make_rule_set(
    rule_set_id: int,
    rules: Sequence[Rule] = (),
    scope: str = "product_attribute",
    logical_operator: str = "and",
    is_active: bool = True,
    is_subgroup: bool = False,
) -> RuleSet:
    return RuleSet(
        id=rule_set_id,
        name=f"Rule set {rule_set_id}",
        scope=scope,
        logical_operator=logical_operator,
        is_active=is_active,
        is_subgroup=is_subgroup,
        rules=list(rules),
    )


def make_catalog_attribute(
    attribute_id: int,
    name: str,
    display_order: int = 0,
    localized_names: dict[str, str] | None = None,
) -> ProductAttribute:
    return ProductAttribute(
        id=attribute_id,
        name=name,
        display_order=display_order,
        localized_names=localized_names,
    )


# =============================================================================
# Test Isolation Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def reset_settings_cache():
    """Reset settings cache before each test to ensure clean state."""
    from ruleset_engine.config import get_settings
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings() -> Settings:
    """Settings with an in-memory database."""
    return Settings(database_url="sqlite+aiosqlite:///:memory:")


@pytest.fixture
def localizer() -> Localizer:
    return Localizer(default_language="en")


# =============================================================================
# Catalog Fixtures
# =============================================================================


@pytest.fixture
def color() -> ProductAttribute:
    """Catalog attribute with a German name."""
    return make_catalog_attribute(1, "Color", 1, {"de": "Farbe"})


@pytest.fixture
def size() -> ProductAttribute:
    return make_catalog_attribute(2, "Size", 2)


@pytest.fixture
def color_attribute(color: ProductAttribute) -> ProductVariantAttribute:
    """Color mapped onto product 7 with red and blue values."""
    return ProductVariantAttribute(
        id=100,
        product_id=7,
        product_attribute_id=color.id,
        product_attribute=color,
        display_order=0,
        is_required=True,
        rule_set_id=None,
        values=[
            ProductVariantAttributeValue(
                id=1000, name="Red", display_order=0, localized_names={"de": "Rot"}
            ),
            ProductVariantAttributeValue(
                id=1001, name="Blue", display_order=1, localized_names={"de": "Blau"}
            ),
        ],
    )


@pytest.fixture
def size_attribute(size: ProductAttribute) -> ProductVariantAttribute:
    """Size mapped onto product 7, offered only for red (rule set 1)."""
    return ProductVariantAttribute(
        id=101,
        product_id=7,
        product_attribute_id=size.id,
        product_attribute=size,
        display_order=1,
        is_required=False,
        rule_set_id=1,
        values=[
            ProductVariantAttributeValue(id=1010, name="S", display_order=0),
            ProductVariantAttributeValue(id=1011, name="M", display_order=1),
        ],
    )


@pytest.fixture
def repository(
    color: ProductAttribute,
    size: ProductAttribute,
    color_attribute: ProductVariantAttribute,
    size_attribute: ProductVariantAttribute,
) -> InMemoryRuleRepository:
    """Repository holding the catalog and rule set 1 ("color is red")."""
    repo = InMemoryRuleRepository()
    repo.catalog.extend([color, size])
    repo.add_attribute(color_attribute)
    repo.add_attribute(size_attribute)
    repo.add_rule_set(make_rule_set(1, [make_rule(11, "variant1", "in", "1000")]))
    return repo


@pytest.fixture
def processors() -> ProcessorRegistry:
    return register_attribute_processors(ProcessorRegistry())


@pytest.fixture
def rule_service(
    repository: InMemoryRuleRepository, localizer: Localizer, settings: Settings
) -> RuleService:
    return RuleService(
        repository,
        options_providers=[VariantValueOptionsProvider(repository, localizer)],
        localizer=localizer,
        settings=settings,
    )


@pytest.fixture
def attribute_provider(
    repository: InMemoryRuleRepository,
    rule_service: RuleService,
    processors: ProcessorRegistry,
    localizer: Localizer,
    settings: Settings,
) -> AttributeRuleProvider:
    return AttributeRuleProvider(
        repository,
        rule_service,
        processors,
        descriptor_cache=DescriptorCache(),
        localizer=localizer,
        settings=settings,
    )
