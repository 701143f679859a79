"""Rule processors: the strategies that decide whether an expression matches.

Leaf processors are registered at startup under the key their descriptors
name. Groups are always evaluated by a `CompositeRule` bound to the group.

Example:
    ```python
    registry = ProcessorRegistry()
    registry.register("variant_value", VariantValueRule)

    processor = registry.resolve("variant_value")
    matched = await processor.match(context, expression)
    ```
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Generic, Protocol, TypeVar

from ruleset_engine.rules.errors import ProcessorNotFoundError
from ruleset_engine.rules.expressions import (
    LogicalRuleOperator,
    RuleExpression,
    RuleExpressionGroup,
)

logger = logging.getLogger(__name__)

ContextT = TypeVar("ContextT")


class RuleProcessor(ABC, Generic[ContextT]):
    """Evaluates one kind of expression against a runtime context."""

    @abstractmethod
    async def match(
        self, context: ContextT, expression: RuleExpression | RuleExpressionGroup
    ) -> bool:
        """Check whether the expression holds for the context."""


class ProcessorResolver(Protocol[ContextT]):
    """Anything that can resolve the processor for an expression."""

    def get_processor(
        self, expression: RuleExpression | RuleExpressionGroup
    ) -> RuleProcessor[ContextT]:
        ...


class ProcessorRegistry:
    """Explicit mapping of processor keys to processor factories.

    Factories are called without arguments on every resolution, so a class
    registers as itself and a shared instance as `lambda: instance`.
    """

    def __init__(self) -> None:
        self._factories: dict[str, Callable[[], RuleProcessor[Any]]] = {}

    def register(self, key: str, factory: Callable[[], RuleProcessor[Any]]) -> None:
        """Register a processor factory under a key, replacing any previous one."""
        if key in self._factories:
            logger.warning(f"Replacing rule processor registered for key '{key}'")
        self._factories[key] = factory

    def resolve(self, key: str | None) -> RuleProcessor[Any]:
        """Create the processor registered for a key.

        Raises:
            ProcessorNotFoundError: If nothing is registered for the key
        """
        factory = self._factories.get(key) if key else None
        if factory is None:
            raise ProcessorNotFoundError(key)
        return factory()

    def __contains__(self, key: object) -> bool:
        return key in self._factories


class CompositeRule(RuleProcessor[ContextT]):
    """Evaluates a group by combining the results of its children.

    AND stops at the first child that does not match, OR at the first child
    that does. A group without children matches.
    """

    def __init__(
        self,
        group: RuleExpressionGroup,
        resolver: ProcessorResolver[ContextT],
    ):
        self.group = group
        self.resolver = resolver

    async def match(
        self,
        context: ContextT,
        expression: RuleExpression | RuleExpressionGroup | None = None,
    ) -> bool:
        group = expression if isinstance(expression, RuleExpressionGroup) else self.group
        is_and = group.logical_operator == LogicalRuleOperator.AND

        for child in group.expressions:
            processor = self.resolver.get_processor(child)
            matched = await processor.match(context, child)

            if is_and and not matched:
                return False
            if not is_and and matched:
                return True

        # All children matched (AND), none matched (OR), or no children at all
        return is_and or not group.expressions
