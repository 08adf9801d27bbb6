# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Configuration loading and validation for CHTL import resolution."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from chtl_imports.models import ResolutionPolicy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILENAME = ".chtl_imports.yml"


class ConfigurationError(Exception):
    """Raised when configuration validation fails critically."""

    pass


class Config:
    """Configuration for one compilation run.

    Loads configuration from .chtl_imports.yml with validation and defaults.
    """

    DEFAULTS = {
        "module_root": "module",
        "working_directory": "",  # empty: process working directory
        "resolution_policy": ResolutionPolicy.MODULE_FIRST,
        "module_extension": ".chtl",
        "default_extensions": [".chtl", ".html", ".css", ".js"],
        "enable_cache": True,
        "file_cache_max_entries": 1000,
        "read_max_retries": 3,
        "warn_on_duplicate_imports": True,
    }

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        """Initialize configuration.

        Args:
            config_path: Path to configuration file. If None, uses default location.
            overrides: Values applied after the file, validated the same way.
        """
        if config_path is None:
            config_path = Path.cwd() / DEFAULT_CONFIG_FILENAME

        self.config_path = config_path
        self._config: Dict[str, Any] = {}
        self._load_config()
        if overrides:
            self._validate_and_merge(overrides)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> "Config":
        """Build a configuration from values only, ignoring any file on disk."""
        config = cls.__new__(cls)
        config.config_path = None
        config._config = cls._fresh_defaults()
        config._validate_and_merge(values)
        return config

    @classmethod
    def _fresh_defaults(cls) -> Dict[str, Any]:
        return cls._fresh_copy(cls.DEFAULTS)

    @staticmethod
    def _fresh_copy(values: Dict[str, Any]) -> Dict[str, Any]:
        # Lists are copied so instances never share mutable values
        return {k: list(v) if isinstance(v, list) else v for k, v in values.items()}

    def _load_config(self) -> None:
        """Load and validate configuration from file."""
        if not self.config_path.exists():
            logger.info(f"Configuration file not found at {self.config_path}, using defaults")
            self._config = self._fresh_defaults()
            return

        try:
            with open(self.config_path, encoding="utf-8") as f:
                loaded_config = yaml.safe_load(f)

            if loaded_config is None:
                logger.warning("Configuration file is empty, using defaults")
                self._config = self._fresh_defaults()
                return

            if not isinstance(loaded_config, dict):
                logger.warning(
                    f"Configuration file must contain a YAML dictionary, "
                    f"got {type(loaded_config)}, using defaults"
                )
                self._config = self._fresh_defaults()
                return

            self._config = self._fresh_defaults()
            self._validate_and_merge(loaded_config)

        except yaml.YAMLError as e:
            logger.warning(
                f"Error parsing configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._fresh_defaults()
        except OSError as e:
            logger.warning(
                f"Cannot read configuration file {self.config_path}: {e}, using defaults"
            )
            self._config = self._fresh_defaults()

    def _validate_and_merge(self, loaded_config: Dict[str, Any]) -> None:
        """Validate loaded configuration and merge with defaults.

        Invalid parameters are logged as warnings and defaults are used.
        """
        for key, value in loaded_config.items():
            if key not in self.DEFAULTS:
                logger.warning(f"Unknown configuration parameter '{key}', ignoring")
                continue

            if not self._validate_parameter(key, value):
                logger.warning(
                    f"Invalid value for '{key}': {value}, using default {self.DEFAULTS[key]}"
                )
                continue

            self._config[key] = list(value) if isinstance(value, list) else value

    def _validate_parameter(self, key: str, value: Any) -> bool:
        """Validate a configuration parameter.

        Returns:
            True if valid, False if invalid
        """
        expected_type = type(self.DEFAULTS[key])
        if not isinstance(value, expected_type):
            return False
        # bool is a subclass of int
        if expected_type is int and isinstance(value, bool):
            return False

        if key in ("file_cache_max_entries", "read_max_retries"):
            return value > 0
        elif key == "module_root":
            return bool(value.strip())
        elif key == "resolution_policy":
            return value in ResolutionPolicy.ALL
        elif key == "module_extension":
            return value.startswith(".") and len(value) > 1
        elif key == "default_extensions":
            return all(
                isinstance(ext, str) and ext.startswith(".") and len(ext) > 1 for ext in value
            )

        return True

    def to_dict(self) -> Dict[str, Any]:
        """Effective configuration as a plain dict."""
        return self._fresh_copy(self._config)

    def resolved_module_root(self, working_directory: str) -> str:
        """Module root made absolute against working_directory.

        Raises:
            ConfigurationError: If the module root points at an existing file.
        """
        root = Path(self.module_root)
        if not root.is_absolute():
            root = Path(working_directory) / root
        if root.is_file():
            raise ConfigurationError(f"module_root must be a directory, got file: {root}")
        return str(root)

    # Property accessors for all configuration values
    @property
    def module_root(self) -> str:
        """Directory holding module files (relative to working directory)."""
        value = self._config["module_root"]
        assert isinstance(value, str)
        return value

    @property
    def working_directory(self) -> str:
        """Anchor for relative paths. Empty string means the process cwd."""
        value = self._config["working_directory"]
        assert isinstance(value, str)
        return value

    @property
    def resolution_policy(self) -> str:
        """ResolutionPolicy value."""
        value = self._config["resolution_policy"]
        assert isinstance(value, str)
        return value

    @property
    def module_extension(self) -> str:
        """Extension of module files."""
        value = self._config["module_extension"]
        assert isinstance(value, str)
        return value

    @property
    def default_extensions(self) -> List[str]:
        """Extensions probed for extension-less import spellings."""
        value = self._config["default_extensions"]
        assert isinstance(value, list)
        return list(value)

    @property
    def enable_cache(self) -> bool:
        """Whether loaded content is cached and served for duplicate imports."""
        value = self._config["enable_cache"]
        assert isinstance(value, bool)
        return value

    @property
    def file_cache_max_entries(self) -> int:
        """Maximum number of cached files before LRU eviction."""
        value = self._config["file_cache_max_entries"]
        assert isinstance(value, int)
        return value

    @property
    def read_max_retries(self) -> int:
        """Maximum read attempts for transient I/O failures."""
        value = self._config["read_max_retries"]
        assert isinstance(value, int)
        return value

    @property
    def warn_on_duplicate_imports(self) -> bool:
        """Whether duplicate imports add a warning to their outcome."""
        value = self._config["warn_on_duplicate_imports"]
        assert isinstance(value, bool)
        return value
