"""
typelint tree-sitter engine package.

This package provides the adapters, type oracle, registry and runner that the
rules in ``typelint.rules`` are executed by.
"""

from .types import (
    Finding, RuleMeta, Rule, RuleContext, Requires,
    LanguageAdapter, BinaryOpInfo, Severity, NodeRange, walk_tree
)

from .registry import (
    Registry, register_rule, register_adapter, get_adapter, get_rule,
    get_all_rules, get_rule_ids, get_enabled_rules, discover_rules, clear
)

from .config import (
    EngineConfig, load_config, get_default_config, save_config, find_config_file,
    get_rule_severity, get_rule_options, meets_severity_threshold
)

from .type_oracle import TypeFlags, StaticType, TypeOracle, DeclaredTypeOracle

__all__ = [
    # Types
    "Finding", "RuleMeta", "Rule", "RuleContext", "Requires",
    "LanguageAdapter", "BinaryOpInfo", "Severity", "NodeRange", "walk_tree",

    # Registry
    "Registry", "register_rule", "register_adapter", "get_adapter", "get_rule",
    "get_all_rules", "get_rule_ids", "get_enabled_rules", "discover_rules", "clear",

    # Config
    "EngineConfig", "load_config", "get_default_config", "save_config", "find_config_file",
    "get_rule_severity", "get_rule_options", "meets_severity_threshold",

    # Type information
    "TypeFlags", "StaticType", "TypeOracle", "DeclaredTypeOracle",
]
