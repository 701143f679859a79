"""Rule descriptors: static definitions of the condition kinds of a scope.

A descriptor tells the engine how to read a stored rule row (value type,
allowed operators), how an editor offers its values (select list) and which
processor evaluates it.

Example:
    ```python
    descriptor = RuleDescriptor(
        scope=RuleScope.PRODUCT_ATTRIBUTE,
        name="variant12",
        display_name="Color",
        rule_type=RuleType.INT_ARRAY,
        select_list=RemoteRuleValueSelectList(data_source="variant_value"),
        operators=[RuleOperator.IN, RuleOperator.NOT_IN],
        processor="variant_value",
        metadata={"parent_id": 12},
    )
    ```
"""

from __future__ import annotations

import logging
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Awaitable, Callable, Iterable, Iterator, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator

logger = logging.getLogger(__name__)

COMPOSITE_PROCESSOR = "composite"
INVALID_PROCESSOR = "invalid"


class RuleScope(str, Enum):
    """Domain contexts a rule set can apply to."""

    PRODUCT_ATTRIBUTE = "product_attribute"
    CART = "cart"
    CUSTOMER = "customer"
    PRODUCT = "product"


class RuleOperator(str, Enum):
    """Operators comparing a context value with an expression value."""

    EQUAL = "eq"
    NOT_EQUAL = "neq"
    LESS_THAN = "lt"
    LESS_THAN_OR_EQUAL = "lte"
    GREATER_THAN = "gt"
    GREATER_THAN_OR_EQUAL = "gte"
    CONTAINS = "contains"
    NOT_CONTAINS = "not_contains"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    IS_EMPTY = "is_empty"
    IS_NOT_EMPTY = "is_not_empty"
    IS_NULL = "is_null"
    IS_NOT_NULL = "is_not_null"
    IN = "in"  # Any selected value is in the list
    NOT_IN = "not_in"  # No selected value is in the list
    ALL_IN = "all_in"  # Every listed value is selected
    NOT_ALL_IN = "not_all_in"

    def match(self, actual: Any, expected: Any) -> bool:
        """Compare a context value (left) with an expression value (right)."""
        comparator = _COMPARISONS.get(self)
        if comparator is None:
            return False
        try:
            return bool(comparator(actual, expected))
        except (TypeError, ValueError):
            return False


def _as_list(value: Any) -> list[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple, set, frozenset)):
        return list(value)
    return [value]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, set, frozenset, dict)):
        return len(value) == 0
    return False


def _any_in(actual: Any, expected: Any) -> bool:
    expected_values = _as_list(expected)
    return any(a in expected_values for a in _as_list(actual))


def _all_in(actual: Any, expected: Any) -> bool:
    actual_values = _as_list(actual)
    return all(e in actual_values for e in _as_list(expected))


_COMPARISONS: dict[RuleOperator, Callable[[Any, Any], bool]] = {
    RuleOperator.EQUAL: lambda a, e: a == e,
    RuleOperator.NOT_EQUAL: lambda a, e: a != e,
    RuleOperator.LESS_THAN: lambda a, e: a < e,
    RuleOperator.LESS_THAN_OR_EQUAL: lambda a, e: a <= e,
    RuleOperator.GREATER_THAN: lambda a, e: a > e,
    RuleOperator.GREATER_THAN_OR_EQUAL: lambda a, e: a >= e,
    RuleOperator.CONTAINS: lambda a, e: e in a,
    RuleOperator.NOT_CONTAINS: lambda a, e: e not in a,
    RuleOperator.STARTS_WITH: lambda a, e: str(a).startswith(str(e)),
    RuleOperator.ENDS_WITH: lambda a, e: str(a).endswith(str(e)),
    RuleOperator.IS_EMPTY: lambda a, e: _is_empty(a),
    RuleOperator.IS_NOT_EMPTY: lambda a, e: not _is_empty(a),
    RuleOperator.IS_NULL: lambda a, e: a is None,
    RuleOperator.IS_NOT_NULL: lambda a, e: a is not None,
    RuleOperator.IN: _any_in,
    RuleOperator.NOT_IN: lambda a, e: not _any_in(a, e),
    RuleOperator.ALL_IN: _all_in,
    RuleOperator.NOT_ALL_IN: lambda a, e: not _all_in(a, e),
}

_ORDERING_OPERATORS = (
    RuleOperator.EQUAL,
    RuleOperator.NOT_EQUAL,
    RuleOperator.GREATER_THAN,
    RuleOperator.GREATER_THAN_OR_EQUAL,
    RuleOperator.LESS_THAN,
    RuleOperator.LESS_THAN_OR_EQUAL,
)

_LIST_OPERATORS = (
    RuleOperator.IN,
    RuleOperator.NOT_IN,
    RuleOperator.ALL_IN,
    RuleOperator.NOT_ALL_IN,
)


def _parse_bool(raw: str) -> bool:
    normalized = raw.strip().lower()
    if normalized in ("true", "1", "yes"):
        return True
    if normalized in ("false", "0", "no"):
        return False
    raise ValueError(f"Not a boolean: {raw!r}")


class RuleType(str, Enum):
    """Value types of rule expressions."""

    BOOLEAN = "boolean"
    INT = "int"
    FLOAT = "float"
    STRING = "string"
    DATETIME = "datetime"
    INT_ARRAY = "int_array"
    FLOAT_ARRAY = "float_array"
    STRING_ARRAY = "string_array"

    @property
    def is_array(self) -> bool:
        return self.value.endswith("_array")

    def valid_operators(self) -> tuple[RuleOperator, ...]:
        """Operators that make sense for values of this type."""
        if self is RuleType.BOOLEAN:
            return (RuleOperator.EQUAL, RuleOperator.NOT_EQUAL)
        if self in (RuleType.INT, RuleType.FLOAT, RuleType.DATETIME):
            return _ORDERING_OPERATORS + (RuleOperator.IS_NULL, RuleOperator.IS_NOT_NULL)
        if self is RuleType.STRING:
            return (
                RuleOperator.EQUAL,
                RuleOperator.NOT_EQUAL,
                RuleOperator.CONTAINS,
                RuleOperator.NOT_CONTAINS,
                RuleOperator.STARTS_WITH,
                RuleOperator.ENDS_WITH,
                RuleOperator.IS_EMPTY,
                RuleOperator.IS_NOT_EMPTY,
            )
        return _LIST_OPERATORS

    def convert(self, raw: str | None) -> Any:
        """Convert a stored raw value into a typed value.

        Array values are stored comma separated. An empty raw value converts
        to None, or to an empty list for array types.

        Raises:
            ValueError: If the raw value does not match the type
        """
        if self.is_array:
            if raw is None:
                return []
            items = [item.strip() for item in raw.split(",")]
            return [_SCALAR_PARSERS[self](item) for item in items if item]

        if raw is None or (self is not RuleType.STRING and not raw.strip()):
            return None
        return _SCALAR_PARSERS[self](raw)


_SCALAR_PARSERS: dict[RuleType, Callable[[str], Any]] = {
    RuleType.BOOLEAN: _parse_bool,
    RuleType.INT: lambda raw: int(raw.strip()),
    RuleType.FLOAT: lambda raw: float(raw.strip()),
    RuleType.STRING: lambda raw: raw,
    RuleType.DATETIME: lambda raw: datetime.fromisoformat(raw.strip()),
    RuleType.INT_ARRAY: lambda raw: int(raw),
    RuleType.FLOAT_ARRAY: lambda raw: float(raw),
    RuleType.STRING_ARRAY: lambda raw: raw,
}


class RuleValueSelectListOption(BaseModel):
    """A fixed option of a local select list."""

    value: str
    text: str
    hint: str | None = None


class LocalRuleValueSelectList(BaseModel):
    """Select list whose options are known up front."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["local"] = "local"
    options: list[RuleValueSelectListOption] = Field(default_factory=list)
    multiple: bool = False


class RemoteRuleValueSelectList(BaseModel):
    """Select list whose options are fetched from an options provider."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["remote"] = "remote"
    data_source: str = Field(..., description="Options provider data source tag")
    multiple: bool = False


RuleValueSelectList = Annotated[
    Union[LocalRuleValueSelectList, RemoteRuleValueSelectList],
    Field(discriminator="kind"),
]


class RuleDescriptor(BaseModel):
    """Static definition of one condition kind within a scope.

    Operators default to the valid operators of the rule type.
    """

    model_config = ConfigDict(frozen=True)

    scope: RuleScope
    name: str = Field(..., min_length=1, description="Unique name within the scope")
    display_name: str | None = None
    group_key: str | None = Field(default=None, description="Category for editors")
    rule_type: RuleType = RuleType.BOOLEAN
    operators: tuple[RuleOperator, ...] = ()
    select_list: RuleValueSelectList | None = None
    processor: str = Field(..., description="Key of the processor evaluating it")
    metadata: dict[str, Any] = Field(default_factory=dict)
    is_valid: bool = True

    @model_validator(mode="before")
    @classmethod
    def default_operators(cls, data: Any) -> Any:
        """Fill operators from the rule type when none are given."""
        if isinstance(data, dict) and not data.get("operators"):
            rule_type = RuleType(data.get("rule_type", RuleType.BOOLEAN))
            data = {**data, "operators": rule_type.valid_operators()}
        return data

    @property
    def is_composite(self) -> bool:
        return self.processor == COMPOSITE_PROCESSOR


def composite_descriptor(scope: RuleScope) -> RuleDescriptor:
    """Descriptor carried by every expression group of a scope."""
    return RuleDescriptor(
        scope=scope,
        name="composite",
        rule_type=RuleType.BOOLEAN,
        processor=COMPOSITE_PROCESSOR,
    )


def invalid_descriptor(scope: RuleScope, name: str) -> RuleDescriptor:
    """Placeholder for stored rows whose condition kind no longer exists.

    Keeps the row visible to editors so it can be deleted.
    """
    return RuleDescriptor(
        scope=scope,
        name=name or "unknown",
        display_name=name,
        rule_type=RuleType.STRING,
        processor=INVALID_PROCESSOR,
        is_valid=False,
    )


class RuleDescriptorCollection:
    """Ordered descriptors of one scope, indexed by name."""

    def __init__(self, descriptors: Iterable[RuleDescriptor] = ()):
        self._descriptors = list(descriptors)
        self._by_name = {d.name.lower(): d for d in self._descriptors}

    def find(self, name: str | None) -> RuleDescriptor | None:
        """Find a descriptor by name (case-insensitive)."""
        if not name:
            return None
        return self._by_name.get(name.lower())

    def __iter__(self) -> Iterator[RuleDescriptor]:
        return iter(self._descriptors)

    def __len__(self) -> int:
        return len(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._by_name


class DescriptorCache:
    """Process-wide descriptor collections, one per scope.

    Collections are loaded lazily on first access. Loading is pure, so two
    concurrent first accesses may both load; the first stored result wins.
    Call `invalidate()` whenever the data descriptors are built from changes.
    """

    def __init__(self) -> None:
        self._entries: dict[RuleScope, RuleDescriptorCollection] = {}

    def get(self, scope: RuleScope) -> RuleDescriptorCollection | None:
        return self._entries.get(scope)

    async def get_or_load(
        self,
        scope: RuleScope,
        loader: Callable[[], Awaitable[Iterable[RuleDescriptor]]],
    ) -> RuleDescriptorCollection:
        cached = self._entries.get(scope)
        if cached is not None:
            return cached

        collection = RuleDescriptorCollection(await loader())
        logger.debug(f"Loaded {len(collection)} rule descriptors for scope {scope.value}")
        return self._entries.setdefault(scope, collection)

    def invalidate(self, scope: RuleScope | None = None) -> None:
        """Drop cached descriptors of one scope, or of all scopes."""
        if scope is None:
            self._entries.clear()
        else:
            self._entries.pop(scope, None)
