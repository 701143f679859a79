"""Read-only rule routes.

Exposes descriptor discovery, compiled (and annotated) expression trees and
attribute rule evaluation.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field

from ruleset_engine.api.dependencies import get_rules
from ruleset_engine.catalog.attribute_rules import AttributeRuleContext
from ruleset_engine.engine import BoundRules
from ruleset_engine.rules.descriptors import RuleScope
from ruleset_engine.rules.expressions import LogicalRuleOperator

logger = logging.getLogger(__name__)

router = APIRouter()


class AttributeMatchRequest(BaseModel):
    """Current selection of a product's attributes."""

    product_id: int | None = None
    selected_values: dict[int, list[int]] = Field(
        default_factory=dict,
        description="Selected value ids keyed by catalog attribute id",
    )
    logical_operator: LogicalRuleOperator | None = Field(
        default=None, description="Overrides the rule set's logical operator"
    )


class AttributeMatchResponse(BaseModel):
    """Whether an attribute is offered for the selection."""

    attribute_id: int
    matches: bool


@router.get("/{scope}/descriptors")
async def list_descriptors(
    scope: RuleScope,
    rules: BoundRules = Depends(get_rules),
) -> list[dict[str, Any]]:
    """List the condition kinds available in a scope."""
    provider = rules.providers.get(scope)
    descriptors = await provider.get_descriptors()
    return [d.model_dump(mode="json") for d in descriptors]


@router.get("/rule-sets/{rule_set_id}/expression")
async def get_rule_set_expression(
    rule_set_id: int,
    include_hidden: bool = False,
    language: str | None = None,
    rules: BoundRules = Depends(get_rules),
) -> dict[str, Any]:
    """Compile a rule set and annotate it for display."""
    rule_set = await rules.service.repository.find_rule_set(rule_set_id)
    if rule_set is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Rule set not found",
        )

    provider = rules.providers.get(rule_set.scope)
    group = await rules.service.create_expression_group(rule_set, provider, include_hidden)
    if group is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Rule set is inactive",
        )

    await rules.service.apply_metadata(group, language)
    return group.model_dump(mode="json")


@router.get("/attributes/{attribute_id}/expression")
async def get_attribute_expression(
    attribute_id: int,
    include_hidden: bool = False,
    rules: BoundRules = Depends(get_rules),
) -> dict[str, Any] | None:
    """Compile the rule set of a product attribute for display."""
    attribute = await rules.service.repository.find_attribute(attribute_id)
    if attribute is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attribute not found",
        )

    group = await rules.attributes.create_expression_group(attribute, include_hidden)
    return group.model_dump(mode="json") if group is not None else None


@router.post("/attributes/{attribute_id}/matches", response_model=AttributeMatchResponse)
async def match_attribute(
    attribute_id: int,
    request: AttributeMatchRequest,
    rules: BoundRules = Depends(get_rules),
) -> AttributeMatchResponse:
    """Decide whether an attribute is offered for the current selection."""
    attribute = await rules.service.repository.find_attribute(attribute_id)
    if attribute is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attribute not found",
        )

    context = AttributeRuleContext(
        attribute=attribute,
        selected_values=request.selected_values,
        product_id=request.product_id or attribute.product_id,
    )
    matches = await rules.attributes.rule_matches(context, request.logical_operator)

    logger.debug(f"Attribute {attribute_id} matches={matches}")
    return AttributeMatchResponse(attribute_id=attribute_id, matches=matches)
