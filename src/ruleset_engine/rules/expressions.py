"""Compiled, in-memory form of rule sets.

An expression tree is a tagged union: `RuleExpression` leaves (`kind="leaf"`)
and `RuleExpressionGroup` containers (`kind="group"`) holding an ordered list
of further expressions. Trees are built per compile call and discarded after
evaluation or rendering.

The `metadata` map of each node is for display only (error notes, display
names of selected values). Evaluation never reads it.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Iterator, Literal, Union

from pydantic import BaseModel, Field, model_validator

from ruleset_engine.rules.descriptors import (
    COMPOSITE_PROCESSOR,
    RuleDescriptor,
    RuleOperator,
    RuleScope,
    composite_descriptor,
)


class LogicalRuleOperator(str, Enum):
    """How the results of a group's children are combined."""

    AND = "and"
    OR = "or"


class RuleExpression(BaseModel):
    """A single evaluable condition.

    The descriptor is resolved when the expression is created from a stored
    rule row. An expression without one cannot be dispatched.
    """

    kind: Literal["leaf"] = "leaf"
    id: int = Field(default=0, description="Id of the stored rule row")
    descriptor: RuleDescriptor | None = None
    operator: RuleOperator = RuleOperator.EQUAL
    value: Any = None
    raw_value: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class RuleExpressionGroup(BaseModel):
    """A logical AND/OR grouping of expressions, possibly nested."""

    kind: Literal["group"] = "group"
    id: int = Field(default=0, description="Id of the rule set")
    descriptor: RuleDescriptor = Field(
        default_factory=lambda: composite_descriptor(RuleScope.PRODUCT_ATTRIBUTE)
    )
    operator: RuleOperator = RuleOperator.EQUAL
    value: Any = None
    raw_value: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    logical_operator: LogicalRuleOperator = LogicalRuleOperator.AND
    is_subgroup: bool = False
    ref_rule_id: int | None = Field(
        default=None, description="Id of the group row this group was expanded from"
    )
    expressions: list[Expression] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_composite_descriptor(self) -> RuleExpressionGroup:
        if self.descriptor.processor != COMPOSITE_PROCESSOR:
            raise ValueError(
                f"Group descriptor must use the '{COMPOSITE_PROCESSOR}' processor, "
                f"got '{self.descriptor.processor}'"
            )
        return self

    def add_expressions(self, *expressions: Expression) -> None:
        """Append child expressions, preserving order."""
        self.expressions.extend(expressions)

    def walk(self) -> Iterator[Expression]:
        """Iterate all descendants depth-first, groups before their children."""
        for expression in self.expressions:
            yield expression
            if isinstance(expression, RuleExpressionGroup):
                yield from expression.walk()


Expression = Annotated[
    Union[RuleExpression, RuleExpressionGroup],
    Field(discriminator="kind"),
]

RuleExpressionGroup.model_rebuild()
