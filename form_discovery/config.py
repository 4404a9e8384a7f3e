"""
Configuration for discovery runs and the browser session around them.

Both dataclasses accept either snake_case or camelCase keys from a plain
dict, so a JSON config file written for the CLI works unchanged.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

from .errors import ConfigError
from .identity import UNSTABLE_ID_MARKERS

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _snake(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _known_values(cls, config: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    values = {}
    for key, value in (config or {}).items():
        snake = _snake(key)
        if snake in names:
            values[snake] = value
        else:
            logger.debug(f"Ignoring unknown {cls.__name__} option: {key}")
    return values


@dataclass
class DiscoveryConfig:
    max_iterations: int = 5
    option_cardinality_cap: int = 4
    timeout: Optional[float] = None  # seconds; soft stop
    detect_conditional: bool = True  # False: a single snapshot, no filling or option trials
    unstable_id_markers: Tuple[str, ...] = UNSTABLE_ID_MARKERS

    def __post_init__(self):
        try:
            self.max_iterations = int(self.max_iterations)
            self.option_cardinality_cap = int(self.option_cardinality_cap)
            if self.timeout is not None:
                self.timeout = float(self.timeout)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid discovery option: {e}") from e
        if self.max_iterations < 0:
            raise ConfigError(f"max_iterations must be >= 0, got {self.max_iterations}")
        if self.option_cardinality_cap < 0:
            raise ConfigError(f"option_cardinality_cap must be >= 0, got {self.option_cardinality_cap}")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        self.unstable_id_markers = tuple(self.unstable_id_markers)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> "DiscoveryConfig":
        return cls(**_known_values(cls, config))


@dataclass
class BrowserConfig:
    headless: bool = False
    navigation_timeout: int = 30000
    wait_time_ms: int = 3000
    wait_for_selector: Optional[str] = None
    scroll_to_bottom: bool = False
    click_apply_button: bool = False
    dismiss_overlays: bool = True
    form_selector: str = "form"
    settle_ms: int = 2000
    option_settle_ms: int = 1000
    field_settle_ms: int = 100
    interaction_timeout: int = 3000  # per fill/check/select call
    capture_form_html: bool = False
    output_dir: str = "discovered_forms"
    debug_artifacts: bool = False

    def __post_init__(self):
        for name in ("navigation_timeout", "wait_time_ms", "settle_ms", "option_settle_ms", "field_settle_ms",
                     "interaction_timeout"):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ConfigError(f"{name} must be a non-negative integer (milliseconds), got {value!r}")

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> "BrowserConfig":
        return cls(**_known_values(cls, config))


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config(config_file: Optional[Union[str, Path]] = None) -> Tuple[DiscoveryConfig, BrowserConfig]:
    """
    Load both configs from an optional JSON file.

    The file may hold ``discovery`` and ``browser`` sections. The
    FORM_DISCOVERY_HEADLESS and FORM_DISCOVERY_TIMEOUT environment variables
    override the browser section.
    """
    data: Dict[str, Any] = {}
    if config_file:
        path = Path(config_file)
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not load config file {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        logger.info(f"Loaded configuration from {path}")

    browser_values = dict(data.get("browser") or {})
    if "FORM_DISCOVERY_HEADLESS" in os.environ:
        browser_values["headless"] = _env_flag(os.environ["FORM_DISCOVERY_HEADLESS"])
    if "FORM_DISCOVERY_TIMEOUT" in os.environ:
        try:
            browser_values["navigation_timeout"] = int(os.environ["FORM_DISCOVERY_TIMEOUT"])
        except ValueError as e:
            raise ConfigError(f"FORM_DISCOVERY_TIMEOUT must be an integer: {e}") from e

    return DiscoveryConfig.from_dict(data.get("discovery")), BrowserConfig.from_dict(browser_values)
