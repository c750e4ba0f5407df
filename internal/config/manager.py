"""
Configuration management for the markup tools.
"""

import logging
import os
import re
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

import tomli

from lib.markup import TELEGRAM_TEMPLATES, Dialect, RenderCapabilities

logger = logging.getLogger(__name__)

# Built-in configuration, overridden by config files
DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {
        "level": "WARNING",
        "console": True,
    },
    "markup": {
        "dialect": Dialect.PERMISSIVE.value,
        "supports-inline-images": True,
        "escape-html": False,
    },
    "converter": {
        "templates": {},
    },
}


def replaceMatchToEnv(match: re.Match) -> str:
    """Replace environment variable placeholders with actual values.

    Args:
        match: A regex match object containing the environment variable name.

    Returns:
        str: The value of the environment variable or the original placeholder
             if the variable is not set.
    """
    key = match.group(1)
    return os.getenv(key, match.group(0))


def substituteEnvVars(value: Any) -> Any:
    """Recursively substitute ${VAR_NAME} placeholders in strings, dicts and lists."""
    if isinstance(value, str):
        return re.sub(r"\$\{([A-Za-z_][A-Za-z0-9_-]*)\}", replaceMatchToEnv, value)
    elif isinstance(value, dict):
        return {k: substituteEnvVars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [substituteEnvVars(item) for item in value]
    return value


class ConfigManager:
    """Manages configuration loading and validation for the markup tools."""

    def __init__(self, configPath: Optional[str] = None, configDirs: Optional[List[str]] = None):
        """
        Initialize ConfigManager.

        Args:
            configPath: Main TOML file, built-in defaults are used when omitted
            configDirs: Directories scanned recursively for more ``*.toml`` files
        """
        self.config_path = configPath
        self.config_dirs = configDirs or []
        self.config = substituteEnvVars(self._mergeConfigs(DEFAULT_CONFIG, self._loadConfig()))
        self._validateConfig()

    def _findTomlFilesRecursive(self, directory: str) -> List[Path]:
        """Recursively find all .toml files in a directory."""
        toml_files: List[Path] = []
        dir_path = Path(directory)

        if not dir_path.exists():
            logger.warning(f"Config directory {directory} does not exist, skipping")
            return toml_files

        if not dir_path.is_dir():
            logger.warning(f"Config path {directory} is not a directory, skipping")
            return toml_files

        for toml_file in dir_path.rglob("*.toml"):
            if toml_file.is_file():
                toml_files.append(toml_file)
                logger.debug(f"Found config file: {toml_file}")

        return sorted(toml_files)

    def _mergeConfigs(self, base_config: Dict[str, Any], new_config: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge two configuration dictionaries, values of ``new_config`` win."""
        merged = base_config.copy()

        for key, value in new_config.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = self._mergeConfigs(merged[key], value)
            else:
                merged[key] = value

        return merged

    def _loadConfig(self) -> Dict[str, Any]:
        """
        Load the main config file, then merge config directories on top of it.

        Returns:
            Dict[str, Any]: The loaded configuration, empty if nothing was given

        Raises:
            SystemExit: If the main config file is missing and no config directories
                        are given, or if the main config file cannot be read
        """
        config: Dict[str, Any] = {}

        if self.config_path is not None:
            config_file = Path(self.config_path)
            if not config_file.exists():
                if not self.config_dirs:
                    logger.error(f"Configuration file {self.config_path} not found!")
                    sys.exit(1)
                logger.warning(f"Configuration file {self.config_path} not found, using config directories")
            else:
                try:
                    with open(config_file, "rb") as f:
                        config = tomli.load(f)
                except (OSError, tomli.TOMLDecodeError) as e:
                    logger.error(f"Failed to load configuration from {self.config_path}: {e}")
                    sys.exit(1)
                logger.info(f"Loaded main config from {self.config_path}")

        for config_dir in self.config_dirs:
            toml_files = self._findTomlFilesRecursive(config_dir)
            logger.info(f"Found {len(toml_files)} .toml files in {config_dir}")

            for toml_file in toml_files:
                try:
                    with open(toml_file, "rb") as f:
                        dir_config = tomli.load(f)
                except (OSError, tomli.TOMLDecodeError) as e:
                    # Continue with other files instead of exiting
                    logger.error(f"Failed to load config file {toml_file}: {e}")
                    continue

                config = self._mergeConfigs(config, dir_config)
                logger.info(f"Merged config from {toml_file}")

        return config

    def _validateConfig(self) -> None:
        """Check values the markup tools cannot run without."""
        dialect = self.getMarkupConfig().get("dialect")
        if dialect not in [d.value for d in Dialect]:
            logger.error(f"Unknown markup dialect '{dialect}' in configuration!")
            sys.exit(1)

        for key, template in self.get("converter", {}).get("templates", {}).items():
            if not isinstance(template, str):
                logger.error(f"Converter template '{key}' must be a string, got {type(template).__name__}")
                sys.exit(1)

    def get(self, key: str, default=None) -> Any:
        """Get configuration value by key."""
        return self.config.get(key, default)

    def getLoggingConfig(self) -> Dict[str, Any]:
        """Get logging-specific configuration."""
        return self.get("logging", {})

    def getMarkupConfig(self) -> Dict[str, Any]:
        """Get parser and renderer configuration."""
        return self.get("markup", {})

    def getDialect(self) -> Dialect:
        """Get the configured markup dialect."""
        return Dialect(self.getMarkupConfig().get("dialect", Dialect.PERMISSIVE.value))

    def getRenderCapabilities(self) -> RenderCapabilities:
        """Get renderer capabilities of the output surface."""
        markupConfig = self.getMarkupConfig()
        return RenderCapabilities(
            supports_inline_images=bool(markupConfig.get("supports-inline-images", True)),
            escape_html=bool(markupConfig.get("escape-html", False)),
        )

    def getConverterTemplates(self) -> Dict[str, str]:
        """
        Get the markdown converter template table.

        Returns:
            Dict[str, str]: Built-in chat templates with configured overrides applied
        """
        templates = dict(TELEGRAM_TEMPLATES)
        templates.update(self.get("converter", {}).get("templates", {}))
        return templates
