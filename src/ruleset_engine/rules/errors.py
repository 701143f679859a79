"""Exceptions raised by the rule engine.

Configuration errors indicate a setup or programming defect (wrong scope,
unregistered processor, cyclic rule sets). They are never retried and always
propagate to the caller.

Conversion errors concern a single stored rule row. The compiler logs them
and drops the row from its group. An invalid nested rule set is reported as
a conversion error of the group row referencing it.
"""

from __future__ import annotations


class RuleEngineError(Exception):
    """Base exception for rule engine errors."""


class RuleConfigurationError(RuleEngineError):
    """Raised when rules or processors are set up inconsistently."""


class ScopeMismatchError(RuleConfigurationError):
    """Raised when a rule set is compiled by a visitor of another scope."""

    def __init__(self, scope: str, expected: str, rule_set_id: int | None = None):
        super().__init__(f"Differing rule scope {scope}. Expected {expected}.")
        self.scope = scope
        self.expected = expected
        self.rule_set_id = rule_set_id


class MissingDescriptorError(RuleConfigurationError):
    """Raised when a leaf expression has no descriptor."""

    def __init__(self, expression_id: int, raw_value: str | None = None):
        super().__init__(
            f"Missing rule descriptor for expression {expression_id} "
            f"('{raw_value or ''}')."
        )
        self.expression_id = expression_id
        self.raw_value = raw_value


class ProcessorNotFoundError(RuleConfigurationError):
    """Raised when no processor is registered for a key."""

    def __init__(self, processor: str | None):
        super().__init__(f"No rule processor registered for key '{processor}'.")
        self.processor = processor


class UnknownScopeError(RuleConfigurationError):
    """Raised when no rule provider serves a scope."""

    def __init__(self, scope: str):
        super().__init__(f"No rule provider registered for scope '{scope}'.")
        self.scope = scope


class RuleSetCycleError(RuleConfigurationError):
    """Raised when nested rule sets reference each other."""

    def __init__(self, rule_set_id: int, path: list[int]):
        chain = " -> ".join(str(i) for i in [*path, rule_set_id])
        super().__init__(f"Rule set {rule_set_id} references itself: {chain}")
        self.rule_set_id = rule_set_id
        self.path = path


class RuleSetDepthExceededError(RuleConfigurationError):
    """Raised when rule sets are nested deeper than allowed."""

    def __init__(self, rule_set_id: int, max_depth: int):
        super().__init__(
            f"Rule set {rule_set_id} exceeds the maximum nesting depth of {max_depth}."
        )
        self.rule_set_id = rule_set_id
        self.max_depth = max_depth


class InvalidRuleSetError(RuleEngineError):
    """Raised when a stored rule set cannot be turned into a group."""

    def __init__(self, rule_set_id: int, message: str):
        super().__init__(f"Rule set {rule_set_id}: {message}")
        self.rule_set_id = rule_set_id


class RuleConversionError(RuleEngineError):
    """Raised when a stored rule row cannot be turned into an expression."""

    def __init__(self, rule_id: int, message: str):
        super().__init__(f"Rule {rule_id}: {message}")
        self.rule_id = rule_id
