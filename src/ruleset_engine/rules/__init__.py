"""Rule engine: descriptors, expression trees, compilation and evaluation."""

from ruleset_engine.rules.descriptors import (
    COMPOSITE_PROCESSOR,
    DescriptorCache,
    LocalRuleValueSelectList,
    RemoteRuleValueSelectList,
    RuleDescriptor,
    RuleDescriptorCollection,
    RuleOperator,
    RuleScope,
    RuleType,
)
from ruleset_engine.rules.errors import (
    InvalidRuleSetError,
    MissingDescriptorError,
    ProcessorNotFoundError,
    RuleConfigurationError,
    RuleConversionError,
    RuleEngineError,
    RuleSetCycleError,
    RuleSetDepthExceededError,
    ScopeMismatchError,
    UnknownScopeError,
)
from ruleset_engine.rules.expressions import (
    LogicalRuleOperator,
    RuleExpression,
    RuleExpressionGroup,
)
from ruleset_engine.rules.options import (
    RuleOption,
    RuleOptionsContext,
    RuleOptionsProvider,
    RuleOptionsRequestReason,
    RuleOptionsResult,
    RuleSelectItem,
)
from ruleset_engine.rules.processors import (
    CompositeRule,
    ProcessorRegistry,
    RuleProcessor,
)
from ruleset_engine.rules.provider import (
    RuleProviderBase,
    RuleProviderRegistry,
    RuleVisitor,
)
from ruleset_engine.rules.service import RuleService

__all__ = [
    # Descriptors
    "COMPOSITE_PROCESSOR",
    "DescriptorCache",
    "LocalRuleValueSelectList",
    "RemoteRuleValueSelectList",
    "RuleDescriptor",
    "RuleDescriptorCollection",
    "RuleOperator",
    "RuleScope",
    "RuleType",
    # Errors
    "InvalidRuleSetError",
    "MissingDescriptorError",
    "ProcessorNotFoundError",
    "RuleConfigurationError",
    "RuleConversionError",
    "RuleEngineError",
    "RuleSetCycleError",
    "RuleSetDepthExceededError",
    "ScopeMismatchError",
    "UnknownScopeError",
    # Expressions
    "LogicalRuleOperator",
    "RuleExpression",
    "RuleExpressionGroup",
    # Options
    "RuleOption",
    "RuleOptionsContext",
    "RuleOptionsProvider",
    "RuleOptionsRequestReason",
    "RuleOptionsResult",
    "RuleSelectItem",
    # Processors
    "CompositeRule",
    "ProcessorRegistry",
    "RuleProcessor",
    # Providers
    "RuleProviderBase",
    "RuleProviderRegistry",
    "RuleVisitor",
    # Service
    "RuleService",
]
