"""Rule set compilation and metadata enrichment.

`RuleService.create_expression_group()` turns a stored rule set into an
expression tree. Each rule row becomes a leaf through the scope's visitor;
rows of type `group` reference another rule set, which is compiled
recursively into a nested group.

Absent data is not an error: an unknown id, a missing or an inactive rule
set all yield None, meaning "no constraint". Rows that cannot be read are
dropped from their group. Scope mismatches and cyclic or too deeply nested
rule sets are configuration errors and propagate. A nested rule set with an
unreadable logical operator is dropped like any other bad row.

Example:
    ```python
    service = RuleService(repository, options_providers=[values_provider])
    group = await service.create_expression_group(42, attribute_rule_provider)
    await service.apply_metadata(group, language="de")
    ```
"""

from __future__ import annotations

import logging
from typing import Sequence

from ruleset_engine.config import Settings, get_settings
from ruleset_engine.database.models import Rule, RuleSet
from ruleset_engine.database.repository import RuleRepository
from ruleset_engine.localization import Localizer
from ruleset_engine.rules.descriptors import RemoteRuleValueSelectList
from ruleset_engine.rules.errors import (
    InvalidRuleSetError,
    RuleConversionError,
    RuleSetCycleError,
    RuleSetDepthExceededError,
    ScopeMismatchError,
)
from ruleset_engine.rules.expressions import RuleExpression, RuleExpressionGroup
from ruleset_engine.rules.options import (
    UNBOUNDED_PAGE_SIZE,
    RuleOptionsContext,
    RuleOptionsProvider,
    RuleOptionsRequestReason,
    RuleSelectItem,
)
from ruleset_engine.rules.provider import RuleVisitor

logger = logging.getLogger(__name__)


class RuleService:
    """Compiles stored rule sets into expression trees and annotates them."""

    def __init__(
        self,
        repository: RuleRepository,
        options_providers: Sequence[RuleOptionsProvider] = (),
        localizer: Localizer | None = None,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.repository = repository
        self.options_providers = list(options_providers)
        self.localizer = localizer or Localizer(default_language=settings.default_language)
        self.default_language = settings.default_language
        self.max_depth = settings.max_rule_set_depth

    async def create_expression_group(
        self,
        rule_set: int | RuleSet | None,
        visitor: RuleVisitor,
        include_hidden: bool = False,
    ) -> RuleExpressionGroup | None:
        """Compile a rule set (entity or id) into an expression group.

        Args:
            rule_set: Rule set entity with rules loaded, or its id
            visitor: Visitor of the rule set's scope
            include_hidden: Also compile the rule set if it is inactive.
                Nested rule sets are only compiled while active.

        Returns:
            The expression group, or None if there is no constraint

        Raises:
            InvalidRuleSetError: If the rule set's logical operator is unknown
            ScopeMismatchError: If the rule set belongs to another scope
            RuleSetCycleError: If nested rule sets reference each other
            RuleSetDepthExceededError: If rule sets are nested too deeply
        """
        return await self._create_group(rule_set, visitor, include_hidden, path=[])

    async def _create_group(
        self,
        rule_set: int | RuleSet | None,
        visitor: RuleVisitor,
        include_hidden: bool,
        path: list[int],
    ) -> RuleExpressionGroup | None:
        if rule_set is None:
            return None

        if isinstance(rule_set, int):
            if rule_set <= 0:
                return None
            if rule_set in path:
                raise RuleSetCycleError(rule_set, path)

            entity = await self.repository.find_rule_set(rule_set)
            if entity is None:
                logger.debug(f"Rule set {rule_set} not found, treating as no constraint")
                return None
            rule_set = entity

        if rule_set.id in path:
            raise RuleSetCycleError(rule_set.id, path)
        if len(path) >= self.max_depth:
            raise RuleSetDepthExceededError(rule_set.id, self.max_depth)

        if rule_set.scope != visitor.scope.value:
            raise ScopeMismatchError(rule_set.scope, visitor.scope.value, rule_set.id)

        if not include_hidden and not rule_set.is_active:
            return None

        group = visitor.visit_rule_set(rule_set)
        chain = [*path, rule_set.id]

        for rule in rule_set.rules:
            try:
                expression = await self._create_expression(rule, visitor, chain)
            except RuleConversionError as e:
                logger.warning(f"Skipping rule in rule set {rule_set.id}: {e}")
                continue

            if expression is not None:
                group.add_expressions(expression)

        return group

    async def _create_expression(
        self,
        rule: Rule,
        visitor: RuleVisitor,
        path: list[int],
    ) -> RuleExpression | RuleExpressionGroup | None:
        if not rule.is_group:
            return await visitor.visit_rule(rule)

        try:
            nested_id = int(rule.value or "")
        except ValueError:
            raise RuleConversionError(
                rule.id, f"invalid rule set reference {rule.value!r}"
            ) from None

        # Nested rule sets are always compiled without hidden sets
        try:
            group = await self._create_group(nested_id, visitor, False, path)
        except InvalidRuleSetError as e:
            raise RuleConversionError(rule.id, str(e)) from e

        if group is not None:
            group.ref_rule_id = rule.id
        return group

    async def apply_metadata(
        self,
        group: RuleExpressionGroup | None,
        language: str | None = None,
    ) -> None:
        """Attach display annotations to all leaves of a tree.

        Leaves with an invalid descriptor get an `error` note. Leaves whose
        values come from a remote select list get `selected_items`, mapping
        each selected value to its display text and hint. Evaluation results
        are unaffected.
        """
        if group is None:
            return

        language = language or self.default_language

        for expression in group.expressions:
            if isinstance(expression, RuleExpressionGroup):
                await self.apply_metadata(expression, language)
                continue

            descriptor = expression.descriptor
            if descriptor is None or not descriptor.is_valid:
                expression.metadata["error"] = self.localizer.localize(
                    "rules.invalid_descriptor", language
                )

            select_list = descriptor.select_list if descriptor is not None else None
            if isinstance(select_list, RemoteRuleValueSelectList):
                await self._apply_selected_items(expression, select_list, language)

    async def _apply_selected_items(
        self,
        expression: RuleExpression,
        select_list: RemoteRuleValueSelectList,
        language: str,
    ) -> None:
        provider = next(
            (p for p in self.options_providers if p.matches(select_list.data_source)),
            None,
        )
        if provider is None:
            logger.debug(f"No options provider for data source '{select_list.data_source}'")
            return

        result = await provider.get_options(
            RuleOptionsContext(
                reason=RuleOptionsRequestReason.SELECTED_DISPLAY_NAMES,
                expression=expression,
                page_size=UNBOUNDED_PAGE_SIZE,
                language=language,
            )
        )

        expression.metadata["selected_items"] = {
            option.value: RuleSelectItem(text=option.text, hint=option.hint)
            for option in result.options
        }
