"""Options providers for rule values selected from remote lists.

An options provider serves one or more data sources named by
`RemoteRuleValueSelectList.data_source`. Editors ask it for all options;
the metadata enricher asks it for the display names of already selected
values.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from pydantic import BaseModel, Field

from ruleset_engine.rules.expressions import RuleExpression

UNBOUNDED_PAGE_SIZE = 2**31 - 1


class RuleOptionsRequestReason(str, Enum):
    """Why options are requested."""

    ALL_OPTIONS = "all_options"  # Options offered by an editor
    SELECTED_DISPLAY_NAMES = "selected_display_names"  # Names of stored values


class RuleOption(BaseModel):
    """One selectable value."""

    value: str
    text: str
    hint: str | None = None


class RuleSelectItem(BaseModel):
    """Display data attached to a selected value."""

    text: str
    hint: str | None = None


class RuleOptionsContext(BaseModel):
    """Request for options of one expression."""

    reason: RuleOptionsRequestReason
    expression: RuleExpression
    page_index: int = Field(default=0, ge=0)
    page_size: int = Field(default=100, ge=1)
    search_term: str | None = None
    language: str | None = None

    @property
    def data_source(self) -> str | None:
        descriptor = self.expression.descriptor
        select_list = descriptor.select_list if descriptor is not None else None
        return getattr(select_list, "data_source", None)


class RuleOptionsResult(BaseModel):
    """Options returned by a provider."""

    options: list[RuleOption] = Field(default_factory=list)
    has_more_data: bool = False


class RuleOptionsProvider(ABC):
    """Provides selectable values for one or more data sources."""

    @abstractmethod
    def matches(self, data_source: str) -> bool:
        """Check whether this provider serves a data source."""

    @abstractmethod
    async def get_options(self, context: RuleOptionsContext) -> RuleOptionsResult:
        """Get options for an expression."""
