"""Database module for the rule set engine.

This module provides:
- SQLAlchemy async database connection
- Rule set, rule and product attribute catalog models
- The read-only repository the rule engine depends on
"""

from ruleset_engine.database.connection import (
    get_db,
    get_db_session,
    init_db,
    close_db,
    create_tables,
    drop_tables,
)
from ruleset_engine.database.models import (
    Base,
    RuleSet,
    Rule,
    ProductAttribute,
    ProductVariantAttribute,
    ProductVariantAttributeValue,
)
from ruleset_engine.database.repository import (
    Page,
    RuleRepository,
    SqlRuleRepository,
)

__all__ = [
    # Connection
    "get_db",
    "get_db_session",
    "init_db",
    "close_db",
    "create_tables",
    "drop_tables",
    # Models
    "Base",
    "RuleSet",
    "Rule",
    "ProductAttribute",
    "ProductVariantAttribute",
    "ProductVariantAttributeValue",
    # Repository
    "Page",
    "RuleRepository",
    "SqlRuleRepository",
]
