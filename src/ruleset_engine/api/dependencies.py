"""FastAPI dependencies for rule engine routes.

Usage:
    ```python
    @router.get("/descriptors")
    async def list_descriptors(rules: BoundRules = Depends(get_rules)):
        ...
    ```
"""

from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ruleset_engine.database.connection import get_db_session
from ruleset_engine.database.repository import RuleRepository, SqlRuleRepository
from ruleset_engine.engine import BoundRules, RuleEngine


def get_rule_engine(request: Request) -> RuleEngine:
    """Get the process-wide rule engine of the application."""
    return request.app.state.rule_engine


async def get_repository(
    db: AsyncSession = Depends(get_db_session),
) -> RuleRepository:
    """Get a repository bound to the request's database session."""
    return SqlRuleRepository(db)


def get_rules(
    repository: RuleRepository = Depends(get_repository),
    engine: RuleEngine = Depends(get_rule_engine),
) -> BoundRules:
    """Get the rule service and providers for the current request."""
    return engine.bind(repository)
