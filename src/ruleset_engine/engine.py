"""Wiring of the rule engine.

`RuleEngine` holds what lives for the whole process: the descriptor cache,
the processor registry and the localizer. `RuleEngine.bind()` combines them
with a repository (usually one per database session) into the service and
providers used for a unit of work.

Example:
    ```python
    engine = RuleEngine()

    async with get_db() as session:
        rules = engine.bind(SqlRuleRepository(session))
        provider = rules.providers.get(RuleScope.PRODUCT_ATTRIBUTE)
        group = await rules.service.create_expression_group(42, provider)
    ```
"""

from __future__ import annotations

from dataclasses import dataclass

from ruleset_engine.catalog.attribute_rules import (
    AttributeRuleProvider,
    register_attribute_processors,
)
from ruleset_engine.catalog.options import VariantValueOptionsProvider
from ruleset_engine.config import Settings, get_settings
from ruleset_engine.database.repository import RuleRepository
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.descriptors import DescriptorCache, RuleScope
from ruleset_engine.rules.processors import ProcessorRegistry
from ruleset_engine.rules.provider import RuleProviderRegistry
from ruleset_engine.rules.service import RuleService


@dataclass
class BoundRules:
    """Rule service and scope providers bound to one repository."""

    service: RuleService
    providers: RuleProviderRegistry

    @property
    def attributes(self) -> AttributeRuleProvider:
        return self.providers.get(RuleScope.PRODUCT_ATTRIBUTE)  # type: ignore[return-value]


class RuleEngine:
    """Process-wide rule engine state."""

    def __init__(
        self,
        settings: Settings | None = None,
        localizer: Localizer | None = None,
        processors: ProcessorRegistry | None = None,
    ):
        self.settings = settings or get_settings()
        self.localizer = localizer or Localizer(
            default_language=self.settings.default_language
        )
        self.processors = processors or register_attribute_processors(ProcessorRegistry())
        self.descriptor_cache = DescriptorCache()

    def bind(self, repository: RuleRepository) -> BoundRules:
        """Create the service and providers for one repository."""
        service = RuleService(
            repository,
            options_providers=[VariantValueOptionsProvider(repository, self.localizer)],
            localizer=self.localizer,
            settings=self.settings,
        )
        providers = RuleProviderRegistry(
            [
                AttributeRuleProvider(
                    repository,
                    service,
                    self.processors,
                    descriptor_cache=self.descriptor_cache,
                    localizer=self.localizer,
                    settings=self.settings,
                ),
            ]
        )
        return BoundRules(service=service, providers=providers)

    def invalidate_descriptors(self, scope: RuleScope | None = None) -> None:
        """Drop cached descriptors, e.g. after the attribute catalog changed."""
        self.descriptor_cache.invalidate(scope)
