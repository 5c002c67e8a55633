"""Configuration loading for the harvester and the catalog differ."""

import copy
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from utils.error_handling import ConfigurationError

DEFAULT_CONFIG_PATH = "config/settings.json"

DEFAULT_SETTINGS: Dict[str, Any] = {
    "urls": {
        "root_url": "https://tailwindcss.com/plus/ui-blocks",
        "login_url": "https://tailwindcss.com/plus/login",
    },
    "timeouts": {
        "login_wait_ms": 60_000,
        "navigation_ms": 30_000,
        "go_back_ms": 15_000,
    },
    "reveal": {
        "strategy": "fixed_delay",
        "settle_delay_ms": 250,
        "condition_timeout_ms": 5_000,
    },
    "traversal": {
        "max_concurrent_categories": 1,
    },
    "browser": {
        "browser_type": "chromium",
        "headless": True,
        "launch_options": {},
        "context_options": {},
    },
    "diff": {
        "diffs_dir": "diffs",
        "max_identifier_length": 200,
        "renderer": "auto",
    },
    "logging": {
        "log_level": "INFO",
        "log_file": "logs/harvester.log",
        "structured_file": None,
    },
}

REVEAL_STRATEGIES = ("fixed_delay", "condition")
DIFF_RENDERERS = ("auto", "git", "unified")
# Diff file names end in a 12 character digest behind a separator, so shorter
# limits cannot hold both it and at least one readable character.
MIN_IDENTIFIER_LENGTH = 14


class ConfigLoader:
    """Centralized configuration loader with caching and validation."""

    ENV_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._config_cache: Dict[str, Dict[str, Any]] = {}
        self._missing_env_vars: set[str] = set()

    def load_config(self, config_path: str) -> Dict[str, Any]:
        """Load and cache JSON configuration with unified error handling.

        Args:
            config_path: Path to configuration file

        Returns:
            Configuration dictionary

        Raises:
            ConfigurationError: If file not found or JSON invalid
        """
        if config_path in self._config_cache:
            return self._config_cache[config_path]

        config_file = Path(config_path)
        if not config_file.exists():
            error_msg = f"Configuration file not found: {config_path}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg)

        try:
            with open(config_file, "r", encoding="utf-8") as f:
                config = json.load(f)
        except json.JSONDecodeError as e:
            error_msg = f"Invalid JSON in configuration {config_path}: {e}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg) from e
        except OSError as e:
            error_msg = f"Error reading configuration {config_path}: {e}"
            self.logger.error(error_msg)
            raise ConfigurationError(error_msg) from e

        if not isinstance(config, dict):
            raise ConfigurationError(
                f"Configuration {config_path} must contain a JSON object"
            )

        config = self._substitute_env_variables(config)

        for message in self.validate_config_structure(config):
            self.logger.warning("Configuration validation warning: %s", message)

        self._config_cache[config_path] = config
        self.logger.debug("Configuration loaded successfully: %s", config_path)
        return config

    def get_nested_value(
        self, config: Dict[str, Any], key_path: str, default: Any = None
    ) -> Any:
        """Get nested configuration value using dot notation.

        Example:
            >>> loader.get_nested_value({'timeouts': {'navigation_ms': 30}}, 'timeouts.navigation_ms')
            30
        """
        value = config
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def clear_cache(self, config_path: Optional[str] = None) -> None:
        if config_path:
            self._config_cache.pop(config_path, None)
        else:
            self._config_cache.clear()
            self._missing_env_vars.clear()
        self.logger.debug("Configuration cache cleared: %s", config_path or "all")

    def _substitute_env_variables(self, value: Any) -> Any:
        if isinstance(value, dict):
            return {k: self._substitute_env_variables(v) for k, v in value.items()}
        if isinstance(value, list):
            return [self._substitute_env_variables(item) for item in value]
        if isinstance(value, str):

            def replace(match: re.Match[str]) -> str:
                env_name = match.group(1)
                env_value = os.getenv(env_name)
                if env_value is None:
                    if env_name not in self._missing_env_vars:
                        self.logger.warning(
                            "Environment variable %s is not set; substituting empty string",
                            env_name,
                        )
                        self._missing_env_vars.add(env_name)
                    return ""
                return env_value

            return self.ENV_PATTERN.sub(replace, value)
        return value

    def validate_config_structure(self, config: Dict[str, Any]) -> List[str]:
        errors: List[str] = []
        for key in config:
            if key not in DEFAULT_SETTINGS:
                errors.append(f"Unknown configuration section '{key}'")
                continue
            if not isinstance(config[key], dict):
                errors.append(f"Section '{key}' must be an object in configuration")

        for key_path in ("timeouts.login_wait_ms", "timeouts.navigation_ms", "timeouts.go_back_ms"):
            value = self.get_nested_value(config, key_path)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                errors.append(f"Value '{key_path}' must be a positive number")

        strategy = self.get_nested_value(config, "reveal.strategy")
        if strategy is not None and strategy not in REVEAL_STRATEGIES:
            errors.append(
                f"Unknown reveal strategy '{strategy}', expected one of {REVEAL_STRATEGIES}"
            )

        renderer = self.get_nested_value(config, "diff.renderer")
        if renderer is not None and renderer not in DIFF_RENDERERS:
            errors.append(
                f"Unknown diff renderer '{renderer}', expected one of {DIFF_RENDERERS}"
            )

        return errors


def merge_settings(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep-merge ``override`` on top of ``base`` without mutating either."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_settings(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


@dataclass
class HarvestSettings:
    """Resolved settings shared by the harvest and diff entry points."""

    root_url: str
    login_url: str
    login_wait_ms: int
    navigation_ms: int
    go_back_ms: int
    reveal_strategy: str
    settle_delay_ms: int
    condition_timeout_ms: int
    max_concurrent_categories: int
    browser: Dict[str, Any] = field(default_factory=dict)
    diffs_dir: str = "diffs"
    max_identifier_length: int = 200
    diff_renderer: str = "auto"
    logging: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_config(cls, data: Optional[Dict[str, Any]]) -> "HarvestSettings":
        resolved = merge_settings(DEFAULT_SETTINGS, data or {})
        urls = resolved["urls"]
        timeouts = resolved["timeouts"]
        reveal = resolved["reveal"]
        diff = resolved["diff"]

        strategy = reveal.get("strategy", "fixed_delay")
        if strategy not in REVEAL_STRATEGIES:
            raise ConfigurationError(f"Unknown reveal strategy: {strategy}")
        renderer = diff.get("renderer", "auto")
        if renderer not in DIFF_RENDERERS:
            raise ConfigurationError(f"Unknown diff renderer: {renderer}")

        concurrency = int(resolved["traversal"].get("max_concurrent_categories", 1))
        if concurrency < 1:
            raise ConfigurationError("traversal.max_concurrent_categories must be >= 1")

        max_identifier_length = int(diff["max_identifier_length"])
        if max_identifier_length < MIN_IDENTIFIER_LENGTH:
            raise ConfigurationError(
                f"diff.max_identifier_length must be >= {MIN_IDENTIFIER_LENGTH}"
            )

        return cls(
            root_url=urls["root_url"],
            login_url=urls["login_url"],
            login_wait_ms=int(timeouts["login_wait_ms"]),
            navigation_ms=int(timeouts["navigation_ms"]),
            go_back_ms=int(timeouts["go_back_ms"]),
            reveal_strategy=strategy,
            settle_delay_ms=int(reveal["settle_delay_ms"]),
            condition_timeout_ms=int(reveal["condition_timeout_ms"]),
            max_concurrent_categories=concurrency,
            browser=resolved["browser"],
            diffs_dir=diff["diffs_dir"],
            max_identifier_length=max_identifier_length,
            diff_renderer=renderer,
            logging=resolved["logging"],
        )


# Global instance for application-wide use
config_loader = ConfigLoader()


def load_settings(config_path: Optional[str] = None) -> HarvestSettings:
    """Load settings from ``config_path``.

    Without an explicit path the default location is used when it exists,
    otherwise the built-in defaults apply.
    """
    if config_path is None:
        if not Path(DEFAULT_CONFIG_PATH).exists():
            return HarvestSettings.from_config({})
        config_path = DEFAULT_CONFIG_PATH
    return HarvestSettings.from_config(config_loader.load_config(str(config_path)))
