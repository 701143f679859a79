"""Scope visitors and the rule provider base class.

A rule provider serves exactly one scope. It knows the scope's descriptors,
translates stored rule rows into expressions (the visitor role used by the
compiler) and resolves the processor for each expression.

Example:
    ```python
    class CartRuleProvider(RuleProviderBase[CartRuleContext]):
        def __init__(self, processors, cache):
            super().__init__(RuleScope.CART, processors, cache)

        async def load_descriptors(self):
            return [RuleDescriptor(scope=self.scope, name="subtotal", ...)]
    ```
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Generic, Iterable, Protocol, TypeVar

from ruleset_engine.database.models import Rule, RuleSet
from ruleset_engine.rules.descriptors import (
    DescriptorCache,
    RuleDescriptor,
    RuleDescriptorCollection,
    RuleOperator,
    RuleScope,
    composite_descriptor,
    invalid_descriptor,
)
from ruleset_engine.rules.errors import (
    InvalidRuleSetError,
    MissingDescriptorError,
    RuleConversionError,
    UnknownScopeError,
)
from ruleset_engine.rules.expressions import (
    LogicalRuleOperator,
    RuleExpression,
    RuleExpressionGroup,
)
from ruleset_engine.rules.processors import (
    CompositeRule,
    ProcessorRegistry,
    RuleProcessor,
)

logger = logging.getLogger(__name__)

ContextT = TypeVar("ContextT")


class RuleVisitor(Protocol):
    """Translates stored rule sets and rows of one scope into expressions."""

    @property
    def scope(self) -> RuleScope:
        ...

    def visit_rule_set(self, rule_set: RuleSet | None) -> RuleExpressionGroup:
        ...

    async def visit_rule(self, rule: Rule) -> RuleExpression:
        ...


class RuleProviderBase(ABC, Generic[ContextT]):
    """Base class for the rule provider of a scope.

    Subclasses implement `load_descriptors()`. Descriptors are cached in the
    shared `DescriptorCache`, so providers can be created per unit of work
    without reloading them.
    """

    def __init__(
        self,
        scope: RuleScope,
        processors: ProcessorRegistry,
        descriptor_cache: DescriptorCache | None = None,
    ):
        self._scope = scope
        self.processors = processors
        self.descriptor_cache = descriptor_cache or DescriptorCache()

    @property
    def scope(self) -> RuleScope:
        return self._scope

    @abstractmethod
    async def load_descriptors(self) -> Iterable[RuleDescriptor]:
        """Build all descriptors of this scope."""

    async def get_descriptors(self) -> RuleDescriptorCollection:
        """Get the scope's descriptors, loading them on first access."""
        return await self.descriptor_cache.get_or_load(self.scope, self.load_descriptors)

    def invalidate_descriptors(self) -> None:
        """Drop cached descriptors so the next access reloads them."""
        self.descriptor_cache.invalidate(self.scope)

    def visit_rule_set(self, rule_set: RuleSet | None) -> RuleExpressionGroup:
        """Create the (empty) group for a rule set.

        Without a rule set the group is an empty AND group, which matches
        unconditionally.

        Raises:
            InvalidRuleSetError: If the stored logical operator is unknown
        """
        rule_set_id = rule_set.id if rule_set is not None else 0
        logical_operator = LogicalRuleOperator.AND
        if rule_set is not None and rule_set.logical_operator:
            try:
                logical_operator = LogicalRuleOperator(rule_set.logical_operator.lower())
            except ValueError:
                raise InvalidRuleSetError(
                    rule_set.id, f"unknown logical operator '{rule_set.logical_operator}'"
                ) from None

        return RuleExpressionGroup(
            id=rule_set_id,
            logical_operator=logical_operator,
            is_subgroup=bool(rule_set.is_subgroup) if rule_set is not None else False,
            value=rule_set_id,
            raw_value=str(rule_set_id),
            descriptor=composite_descriptor(self.scope),
        )

    async def visit_rule(self, rule: Rule) -> RuleExpression:
        """Create the leaf expression for a stored rule row.

        Rows naming an unknown condition kind get an invalid descriptor so
        they can still be displayed and deleted.

        Raises:
            RuleConversionError: If the operator or value cannot be read
        """
        descriptors = await self.get_descriptors()
        descriptor = descriptors.find(rule.rule_type)

        if descriptor is None:
            logger.warning(
                f"Unknown rule type '{rule.rule_type}' in scope {self.scope.value} "
                f"(rule {rule.id})"
            )
            descriptor = invalid_descriptor(self.scope, rule.rule_type)

        try:
            operator = RuleOperator(rule.operator)
        except ValueError:
            raise RuleConversionError(rule.id, f"unknown operator '{rule.operator}'") from None

        if descriptor.is_valid and operator not in descriptor.operators:
            raise RuleConversionError(
                rule.id,
                f"operator '{operator.value}' is not allowed for '{descriptor.name}'",
            )

        try:
            value = descriptor.rule_type.convert(rule.value)
        except ValueError as e:
            raise RuleConversionError(
                rule.id, f"invalid {descriptor.rule_type.value} value {rule.value!r}"
            ) from e

        return RuleExpression(
            id=rule.id,
            descriptor=descriptor,
            operator=operator,
            value=value,
            raw_value=rule.value,
        )

    def get_processor(
        self, expression: RuleExpression | RuleExpressionGroup
    ) -> RuleProcessor[ContextT]:
        """Resolve the processor evaluating an expression.

        Raises:
            MissingDescriptorError: If a leaf has no descriptor
            ProcessorNotFoundError: If the leaf's processor is not registered
        """
        if isinstance(expression, RuleExpressionGroup):
            return CompositeRule(expression, self)

        descriptor = expression.descriptor
        if descriptor is None:
            raise MissingDescriptorError(expression.id, expression.raw_value)

        if descriptor.is_composite:
            # A leaf marked composite has no children to combine
            return CompositeRule(RuleExpressionGroup(id=expression.id), self)

        return self.processors.resolve(descriptor.processor)

    async def match(
        self, context: ContextT, expression: RuleExpression | RuleExpressionGroup
    ) -> bool:
        """Evaluate an expression (leaf or group) against a context."""
        processor = self.get_processor(expression)
        return await processor.match(context, expression)


class RuleProviderRegistry:
    """Rule providers keyed by the scope they serve."""

    def __init__(self, providers: Iterable[RuleProviderBase] = ()):
        self._providers: dict[RuleScope, RuleProviderBase] = {}
        for provider in providers:
            self.register(provider)

    def register(self, provider: RuleProviderBase) -> None:
        self._providers[provider.scope] = provider

    def get(self, scope: RuleScope | str) -> RuleProviderBase:
        """Get the provider of a scope.

        Raises:
            UnknownScopeError: If no provider serves the scope
        """
        try:
            return self._providers[RuleScope(scope)]
        except (KeyError, ValueError):
            raise UnknownScopeError(str(getattr(scope, "value", scope))) from None
