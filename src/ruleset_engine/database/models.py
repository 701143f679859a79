"""Database models for rule sets and the product attribute catalog.

## Schema Overview

```
rule_sets
└── rules (1:N) - a row with rule_type "group" references another rule set

product_attributes                      (catalog, one per attribute kind)
└── product_variant_attributes (1:N)    (attribute mapped onto a product)
    ├── rule_sets (N:1, optional)       (visibility condition)
    └── product_variant_attribute_values (1:N)
```

Localized names are stored as a JSON object keyed by language code,
e.g. `{"de": "Farbe", "fr": "Couleur"}`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

GROUP_RULE_TYPE = "group"


class Base(DeclarativeBase):
    """Base class for all database models."""

    type_annotation_map = {
        dict[str, Any]: JSON,
        dict[str, str]: JSON,
    }


class RuleSet(Base):
    """A named, logically combined collection of rules.

    Rule sets used only as nested groups of another rule set carry
    `is_subgroup=True` and are not offered for direct assignment.
    """

    __tablename__ = "rule_sets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    scope: Mapped[str] = mapped_column(String(32), nullable=False)
    is_subgroup: Mapped[bool] = mapped_column(Boolean, default=False)
    logical_operator: Mapped[str] = mapped_column(String(8), default="and")  # and, or

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    # Relationships
    rules: Mapped[list["Rule"]] = relationship(
        back_populates="rule_set",
        cascade="all, delete-orphan",
        order_by=lambda: [Rule.display_order, Rule.id],
    )

    __table_args__ = (
        Index("ix_rule_sets_scope", "scope", "is_active"),
    )

    def __repr__(self) -> str:
        return f"<RuleSet {self.id} scope={self.scope}>"


class Rule(Base):
    """A single persisted condition, or a reference to a nested rule set."""

    __tablename__ = "rules"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    rule_set_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("rule_sets.id", ondelete="CASCADE"), nullable=False
    )

    rule_type: Mapped[str] = mapped_column(String(100), nullable=False)
    operator: Mapped[str] = mapped_column(String(20), nullable=False)
    value: Mapped[str | None] = mapped_column(Text)  # Nested rule set id for groups
    display_order: Mapped[int] = mapped_column(Integer, default=0)

    # Relationships
    rule_set: Mapped["RuleSet"] = relationship(
        back_populates="rules"
    )

    __table_args__ = (
        Index("ix_rules_rule_set", "rule_set_id", "display_order"),
    )

    @property
    def is_group(self) -> bool:
        """Whether this row references a nested rule set."""
        return self.rule_type == GROUP_RULE_TYPE

    def __repr__(self) -> str:
        return f"<Rule {self.id} {self.rule_type} {self.operator} {self.value!r}>"


class ProductAttribute(Base):
    """A catalog attribute such as color or size."""

    __tablename__ = "product_attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(400), nullable=False)
    alias: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    localized_names: Mapped[dict[str, str] | None] = mapped_column(JSON)

    __table_args__ = (
        Index("ix_product_attributes_display_order", "display_order", "id"),
    )

    def __repr__(self) -> str:
        return f"<ProductAttribute {self.name}>"


class ProductVariantAttribute(Base):
    """A catalog attribute mapped onto a product.

    The optional rule set decides whether the attribute is offered for the
    current selection of other attributes.
    """

    __tablename__ = "product_variant_attributes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_attribute_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("product_attributes.id", ondelete="CASCADE")
    )
    text_prompt: Mapped[str | None] = mapped_column(String(400))
    is_required: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    rule_set_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("rule_sets.id", ondelete="SET NULL")
    )

    # Relationships
    product_attribute: Mapped["ProductAttribute"] = relationship()
    rule_set: Mapped["RuleSet | None"] = relationship()
    values: Mapped[list["ProductVariantAttributeValue"]] = relationship(
        back_populates="variant_attribute",
        cascade="all, delete-orphan",
        order_by=lambda: [
            ProductVariantAttributeValue.display_order,
            ProductVariantAttributeValue.id,
        ],
    )

    __table_args__ = (
        Index("ix_product_variant_attributes_product", "product_id"),
    )

    def __repr__(self) -> str:
        return f"<ProductVariantAttribute {self.id} product={self.product_id}>"


class ProductVariantAttributeValue(Base):
    """A selectable value of a product variant attribute."""

    __tablename__ = "product_variant_attribute_values"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_variant_attribute_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("product_variant_attributes.id", ondelete="CASCADE")
    )
    name: Mapped[str] = mapped_column(String(400), nullable=False)
    alias: Mapped[str | None] = mapped_column(String(100))
    value_type: Mapped[str] = mapped_column(String(32), default="simple")
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    localized_names: Mapped[dict[str, str] | None] = mapped_column(JSON)

    # Relationships
    variant_attribute: Mapped["ProductVariantAttribute"] = relationship(
        back_populates="values"
    )

    def __repr__(self) -> str:
        return f"<ProductVariantAttributeValue {self.name}>"
