"""
Engine configuration.

Settings live in a YAML file (``.typelint.yml`` and friends) found by walking
up from the analysed path. Anything the file leaves out keeps its default.
Per-rule options, such as ``allow-equal`` for
``types.no_non_number_comparison``, sit under ``rule_configs``.

Example::

    enabled_rules: ["types.*"]
    max_findings_per_file: 20
    rule_severities:
      types.no_non_number_comparison: error
    rule_configs:
      types.no_non_number_comparison:
        allow-equal: true
"""

import copy
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE_NAMES = [".typelint.yml", ".typelint.yaml", "typelint.yml", "typelint.yaml"]

# Severities from least to most serious
SEVERITY_LEVELS = ("info", "warning", "error")

# Sections merged key by key instead of replaced wholesale
_NESTED_SECTIONS = ("rule_severities", "language_configs", "rule_configs")


@dataclass
class EngineConfig:
    """Configuration for the typelint engine."""

    enabled_rules: List[str] = field(default_factory=lambda: ["*"])
    max_findings_per_file: int = 50
    max_total_findings: int = 1000
    severity_threshold: str = "info"

    # rule id -> "info" | "warning" | "error"
    rule_severities: Dict[str, str] = field(default_factory=dict)
    # language id -> options shared by every rule for that language
    language_configs: Dict[str, Dict[str, Any]] = field(default_factory=lambda: {
        "typescript": {},
        "javascript": {},
    })
    # rule id -> option -> value
    rule_configs: Dict[str, Dict[str, Any]] = field(default_factory=lambda: {
        "types.no_non_number_comparison": {"allow-equal": False},
    })


DEFAULTS: Dict[str, Any] = dataclasses.asdict(EngineConfig())


def _apply_overrides(settings: Dict[str, Any], overrides: Dict[str, Any], source: str) -> None:
    for key, value in overrides.items():
        if key not in settings:
            logger.warning("Ignoring unknown config key %r in %s", key, source)
        elif key == "rule_severities":
            settings[key].update(value or {})
        elif key in _NESTED_SECTIONS:
            for name, options in (value or {}).items():
                settings[key].setdefault(name, {}).update(options or {})
        else:
            settings[key] = value


def load_config(config_path: Optional[str] = None) -> EngineConfig:
    """
    Build an ``EngineConfig`` from a YAML file layered over the defaults.

    A missing path gives the defaults. A file that cannot be read or parsed
    is reported with a warning and also gives the defaults.
    """
    settings = copy.deepcopy(DEFAULTS)
    if not config_path or not Path(config_path).is_file():
        return EngineConfig(**settings)

    try:
        overrides = yaml.safe_load(Path(config_path).read_text(encoding='utf-8')) or {}
        if not isinstance(overrides, dict):
            raise ValueError("top level of a config file must be a mapping")
        _apply_overrides(settings, overrides, config_path)
        return EngineConfig(**settings)
    except (OSError, ValueError, TypeError, AttributeError, yaml.YAMLError) as e:
        logger.warning("Failed to load config from %s: %s; using default configuration", config_path, e)
        return EngineConfig(**copy.deepcopy(DEFAULTS))


def get_default_config() -> EngineConfig:
    return load_config(None)


def save_config(config: EngineConfig, config_path: str) -> None:
    """Write ``config`` as YAML, creating parent directories as needed."""
    target = Path(config_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(yaml.safe_dump(dataclasses.asdict(config), default_flow_style=False, sort_keys=False),
                      encoding='utf-8')


def find_config_file(start_path: str = ".") -> Optional[str]:
    """
    Nearest config file at or above ``start_path`` (a file or a directory).

    Within one directory the names in ``CONFIG_FILE_NAMES`` are tried in order.
    """
    start = Path(start_path).absolute()
    if start.is_file():
        start = start.parent

    for directory in (start, *start.parents):
        for name in CONFIG_FILE_NAMES:
            candidate = directory / name
            if candidate.exists():
                return str(candidate)
    return None


def get_rule_severity(rule_id: str, config: EngineConfig, default_severity: str = "warning") -> str:
    """Severity configured for ``rule_id``, else ``default_severity``."""
    return config.rule_severities.get(rule_id, default_severity)


def meets_severity_threshold(severity: str, config: EngineConfig) -> bool:
    """True when ``severity`` is at or above ``config.severity_threshold``.

    An unrecognised threshold lets everything through; an unrecognised
    severity is ranked with ``"info"``.
    """
    threshold = config.severity_threshold
    if threshold not in SEVERITY_LEVELS:
        return True
    rank = SEVERITY_LEVELS.index(severity) if severity in SEVERITY_LEVELS else 0
    return rank >= SEVERITY_LEVELS.index(threshold)


def get_rule_options(config: EngineConfig, rule_id: str, language: Optional[str] = None) -> Dict[str, Any]:
    """Options a rule sees in its context: language settings overlaid with the rule's own."""
    options: Dict[str, Any] = {}
    if language:
        options.update(config.language_configs.get(language, {}))
    options.update(config.rule_configs.get(rule_id, {}))
    return options
