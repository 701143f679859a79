"""Catalog rule scopes."""

from ruleset_engine.catalog.attribute_rules import (
    AttributeRuleContext,
    AttributeRuleProvider,
    VariantValueRule,
    register_attribute_processors,
)
from ruleset_engine.catalog.options import VariantValueOptionsProvider

__all__ = [
    "AttributeRuleContext",
    "AttributeRuleProvider",
    "VariantValueRule",
    "register_attribute_processors",
    "VariantValueOptionsProvider",
]
