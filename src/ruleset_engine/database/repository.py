"""Read access to rule sets and the attribute catalog.

The rule engine only reads persisted data through the `RuleRepository`
protocol. `SqlRuleRepository` implements it on top of an `AsyncSession`;
tests substitute an in-memory implementation.

Reads are retried on transient connection errors. Anything else (missing
tables, invalid SQL) propagates immediately.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, Protocol, Sequence, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ruleset_engine.database.models import (
    ProductAttribute,
    ProductVariantAttribute,
    ProductVariantAttributeValue,
    RuleSet,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of an ordered query result."""

    items: list[T] = field(default_factory=list)
    page_index: int = 0
    page_size: int = 0
    has_next_page: bool = False

    def __iter__(self):
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


class RuleRepository(Protocol):
    """Persistence operations the rule engine depends on."""

    async def find_rule_set(self, rule_set_id: int) -> RuleSet | None:
        """Get a rule set with its rules loaded, or None."""
        ...

    async def find_attribute(self, attribute_id: int) -> ProductVariantAttribute | None:
        """Get a product variant attribute with its rule set loaded, or None."""
        ...

    async def list_attributes(
        self, page_index: int, page_size: int
    ) -> Page[ProductAttribute]:
        """Get a page of catalog attributes ordered by display order."""
        ...

    async def find_attribute_values(
        self, value_ids: Sequence[int]
    ) -> list[ProductVariantAttributeValue]:
        """Get attribute values by id, with their owning attribute loaded."""
        ...

    async def list_attribute_values(
        self,
        product_attribute_id: int,
        page_index: int,
        page_size: int,
        search: str | None = None,
    ) -> Page[ProductVariantAttributeValue]:
        """Get a page of values of all variant attributes mapped from a catalog attribute."""
        ...


_retry_transient = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
    retry=retry_if_exception_type(OperationalError),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


class SqlRuleRepository:
    """`RuleRepository` backed by SQLAlchemy.

    Example:
        ```python
        async with get_db() as session:
            repository = SqlRuleRepository(session)
            rule_set = await repository.find_rule_set(42)
        ```
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    @_retry_transient
    async def find_rule_set(self, rule_set_id: int) -> RuleSet | None:
        stmt = (
            select(RuleSet)
            .options(selectinload(RuleSet.rules))
            .where(RuleSet.id == rule_set_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @_retry_transient
    async def find_attribute(self, attribute_id: int) -> ProductVariantAttribute | None:
        stmt = (
            select(ProductVariantAttribute)
            .options(
                selectinload(ProductVariantAttribute.rule_set).selectinload(RuleSet.rules),
                selectinload(ProductVariantAttribute.product_attribute),
            )
            .where(ProductVariantAttribute.id == attribute_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    @_retry_transient
    async def list_attributes(
        self, page_index: int, page_size: int
    ) -> Page[ProductAttribute]:
        # One extra row tells whether another page follows
        stmt = (
            select(ProductAttribute)
            .order_by(ProductAttribute.display_order, ProductAttribute.id)
            .offset(page_index * page_size)
            .limit(page_size + 1)
        )
        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())

        return Page(
            items=rows[:page_size],
            page_index=page_index,
            page_size=page_size,
            has_next_page=len(rows) > page_size,
        )

    @_retry_transient
    async def find_attribute_values(
        self, value_ids: Sequence[int]
    ) -> list[ProductVariantAttributeValue]:
        if not value_ids:
            return []

        stmt = (
            select(ProductVariantAttributeValue)
            .options(
                selectinload(ProductVariantAttributeValue.variant_attribute).selectinload(
                    ProductVariantAttribute.product_attribute
                )
            )
            .where(ProductVariantAttributeValue.id.in_(list(value_ids)))
            .order_by(
                ProductVariantAttributeValue.display_order,
                ProductVariantAttributeValue.id,
            )
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    @_retry_transient
    async def list_attribute_values(
        self,
        product_attribute_id: int,
        page_index: int,
        page_size: int,
        search: str | None = None,
    ) -> Page[ProductVariantAttributeValue]:
        stmt = (
            select(ProductVariantAttributeValue)
            .join(ProductVariantAttributeValue.variant_attribute)
            .options(
                selectinload(ProductVariantAttributeValue.variant_attribute).selectinload(
                    ProductVariantAttribute.product_attribute
                )
            )
            .where(ProductVariantAttribute.product_attribute_id == product_attribute_id)
        )
        if search:
            stmt = stmt.where(ProductVariantAttributeValue.name.ilike(f"%{search}%"))

        stmt = (
            stmt.order_by(
                ProductVariantAttributeValue.display_order,
                ProductVariantAttributeValue.id,
            )
            .offset(page_index * page_size)
            .limit(page_size + 1)
        )
        result = await self.session.execute(stmt)
        rows = list(result.scalars().all())

        return Page(
            items=rows[:page_size],
            page_index=page_index,
            page_size=page_size,
            has_next_page=len(rows) > page_size,
        )
