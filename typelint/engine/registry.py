"""
Rule and adapter registry.

Rules are keyed by their id and adapters by language. Rule packages are
scanned with ``discover_rules``: every module exposing a ``RULES`` list has
its entries registered. The module-level functions act on one shared
registry used by the runner.
"""

import fnmatch
import importlib
import logging
import os
import pkgutil
from typing import Dict, Iterator, List, Optional

from .types import LanguageAdapter, Rule

logger = logging.getLogger(__name__)


class Registry:
    """Holds the rules and language adapters known to the engine."""

    def __init__(self):
        self._rules: Dict[str, Rule] = {}  # insertion order is run order
        self._adapters: Dict[str, LanguageAdapter] = {}

    # --- rules ---

    def register_rule(self, rule: Rule) -> bool:
        """Add a rule; returns False if its id is already taken."""
        if rule.meta.id in self._rules:
            return False
        self._rules[rule.meta.id] = rule
        return True

    def get_rule(self, rule_id: str) -> Optional[Rule]:
        return self._rules.get(rule_id)

    def get_all_rules(self) -> List[Rule]:
        return list(self._rules.values())

    def get_rule_ids(self) -> List[str]:
        return list(self._rules)

    def get_rules_for_language(self, language: str) -> List[Rule]:
        return [rule for rule in self._rules.values() if language in rule.meta.langs]

    def get_enabled_rules(self, enabled_patterns: List[str], language: str) -> List[Rule]:
        """Rules for ``language`` whose id matches one of the glob patterns (``"*"`` for all)."""
        if not enabled_patterns:
            return []
        candidates = self.get_rules_for_language(language)
        if "*" in enabled_patterns:
            return candidates
        return [rule for rule in candidates
                if any(fnmatch.fnmatch(rule.meta.id, pattern) for pattern in enabled_patterns)]

    # --- adapters ---

    def register_adapter(self, language: str, adapter: LanguageAdapter) -> None:
        """Add an adapter; the first adapter registered for a language wins."""
        self._adapters.setdefault(language, adapter)

    def get_adapter(self, language: str) -> Optional[LanguageAdapter]:
        return self._adapters.get(language)

    def get_adapter_for_file(self, file_path: str) -> Optional[LanguageAdapter]:
        """Adapter claiming the file's extension (case-insensitive), if any."""
        suffix = os.path.splitext(file_path)[1].lower()
        return next((a for a in self._adapters.values() if suffix in a.file_extensions), None)

    def get_all_adapters(self) -> Dict[str, LanguageAdapter]:
        return dict(self._adapters)

    def list_supported_languages(self) -> List[str]:
        return list(self._adapters)

    # --- discovery ---

    def discover_rules(self, entry_packages: List[str]) -> int:
        """
        Import each package and its submodules, registering their ``RULES``.

        Args:
            entry_packages: Dotted package names, e.g. ``["typelint.rules"]``

        Returns:
            How many rules were newly registered
        """
        added = 0
        for package_name in entry_packages:
            for module in self._iter_modules(package_name):
                added += self._register_module_rules(module)
        return added

    def _iter_modules(self, package_name: str) -> Iterator:
        try:
            package = importlib.import_module(package_name)
        except ImportError as e:
            logger.warning("Could not import package %s: %s", package_name, e)
            return
        yield package

        search_path = getattr(package, '__path__', None)
        if search_path is None:
            return
        for info in pkgutil.walk_packages(search_path, package_name + "."):
            try:
                yield importlib.import_module(info.name)
            except Exception as e:
                logger.warning("Failed to import %s: %s", info.name, e)

    def _register_module_rules(self, module) -> int:
        entries = getattr(module, 'RULES', None)
        if not isinstance(entries, list):
            return 0

        added = 0
        for entry in entries:
            rule = entry() if isinstance(entry, type) else entry
            if not all(hasattr(rule, attr) for attr in ('meta', 'requires', 'visit')):
                logger.warning("Ignoring non-rule object in %s.RULES: %r", module.__name__, rule)
                continue
            if self.register_rule(rule):
                added += 1
        return added

    def clear(self) -> None:
        """Forget every rule and adapter."""
        self._rules.clear()
        self._adapters.clear()


_global_registry = Registry()


def register_rule(rule: Rule) -> bool:
    return _global_registry.register_rule(rule)


def register_adapter(language: str, adapter: LanguageAdapter) -> None:
    _global_registry.register_adapter(language, adapter)


def get_adapter(language: str) -> Optional[LanguageAdapter]:
    return _global_registry.get_adapter(language)


def get_rule(rule_id: str) -> Optional[Rule]:
    return _global_registry.get_rule(rule_id)


def get_all_rules() -> List[Rule]:
    return _global_registry.get_all_rules()


def get_rule_ids() -> List[str]:
    return _global_registry.get_rule_ids()


def get_enabled_rules(enabled_patterns: List[str], language: str) -> List[Rule]:
    return _global_registry.get_enabled_rules(enabled_patterns, language)


def discover_rules(entry_packages: List[str]) -> int:
    return _global_registry.discover_rules(entry_packages)


def clear() -> None:
    """Reset the shared registry (tests)."""
    _global_registry.clear()
