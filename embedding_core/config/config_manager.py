"""
Centralized Configuration Management System

This module provides the configuration system for the embedding store:
- Centralizes all configuration settings
- Supports environment-specific overrides
- Validates configuration on load and on every update
- Provides type-safe access to configuration values
"""

import os
import json
import yaml
import logging
import threading
from typing import Any, Dict, Optional, Union
from pathlib import Path
from dataclasses import dataclass, field
from enum import Enum

from embedding_core.interfaces import (
    DEFAULT_MAXIMUM_RESULTS,
    DEFAULT_MINIMUM_SCORE,
    ElementKindError,
    resolve_dtype,
)


class Environment(Enum):
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


def _parse_bool(value: str) -> bool:
    return value.lower() in ("true", "1", "yes")


def _parse_optional_int(value: str) -> Optional[int]:
    return None if value.lower() in ("", "none", "null") else int(value)


def _parse_optional_float(value: str) -> Optional[float]:
    return None if value.lower() in ("", "none", "null") else float(value)


def _parse_optional_str(value: str) -> Optional[str]:
    return None if value.lower() in ("", "none", "null") else value


def _is_integer(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class StoreConfig:
    """Embedding matrix configuration"""

    dtype: Optional[str] = None  # inferred from the first append when None
    dimension: Optional[int] = None  # taken from the first append when None
    max_memory_usage: Optional[float] = None  # MB


@dataclass
class SearchConfig:
    """Default search filters"""

    minimum_score: float = DEFAULT_MINIMUM_SCORE
    maximum_results: int = DEFAULT_MAXIMUM_RESULTS


@dataclass
class SerializationConfig:
    """Dump/load codec configuration"""

    use_single_float: bool = False


@dataclass
class LoggingConfig:
    """Logging configuration"""

    level: LogLevel = LogLevel.INFO
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    json_format: bool = False


@dataclass
class AppConfig:
    """Main application configuration"""

    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    store: StoreConfig = field(default_factory=StoreConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    serialization: SerializationConfig = field(default_factory=SerializationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails"""

    pass


class ConfigManager:
    """
    Centralized configuration manager with support for:
    - Environment-specific configurations
    - Configuration validation
    - Dynamic configuration updates
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls, *args, **kwargs):
        """Singleton pattern implementation"""
        if not cls._instance:
            with cls._lock:
                if not cls._instance:
                    cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self, config_dir: Optional[Union[str, Path]] = None):
        # Avoid re-initialization in singleton
        if hasattr(self, "_initialized"):
            return

        self._initialized = True
        if config_dir:
            self.config_dir = Path(config_dir)
        else:
            project_root = Path(__file__).parent.parent.parent
            self.config_dir = project_root / "config"

        self.config: AppConfig = AppConfig()
        self.logger = logging.getLogger(__name__)

        self._load_configuration()

    def _load_configuration(self):
        """Load configuration from multiple sources in priority order"""
        # 1. Load default configuration
        self.config = AppConfig()

        # 2. Load base configuration file
        self._load_from_file("config.yaml")
        self._load_from_file("config.json")

        # 3. Load environment-specific configuration
        env = os.getenv("ENVIRONMENT", "development").lower()
        self._load_from_file(f"environments/config.{env}.yaml")
        self._load_from_file(f"environments/config.{env}.json")

        # 4. Load from environment variables (highest priority)
        self._load_from_environment()

        # 5. Validate configuration
        self._validate_configuration()

    def _load_from_file(self, filename: str):
        """Load configuration from YAML/JSON file"""
        file_path = self.config_dir / filename
        if not file_path.exists():
            return

        try:
            with open(file_path, "r") as f:
                if filename.endswith(".yaml") or filename.endswith(".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load configuration from {filename}: {e}")
            return

        if data:
            self._update_config_from_dict(data)
            self.logger.info(f"Loaded configuration from {filename}")

    def _load_from_environment(self):
        """Load configuration from environment variables"""
        env_mappings = {
            # Environment
            "ENVIRONMENT": ("environment", lambda x: Environment(x.lower())),
            "DEBUG": ("debug", _parse_bool),
            # Store
            "EMBEDDING_DTYPE": ("store.dtype", _parse_optional_str),
            "EMBEDDING_DIMENSION": ("store.dimension", _parse_optional_int),
            "MAX_MEMORY_USAGE": ("store.max_memory_usage", _parse_optional_float),
            # Search
            "SEARCH_MINIMUM_SCORE": ("search.minimum_score", float),
            "SEARCH_MAXIMUM_RESULTS": ("search.maximum_results", int),
            # Serialization
            "SERIALIZATION_SINGLE_FLOAT": ("serialization.use_single_float", _parse_bool),
            # Logging
            "LOG_LEVEL": ("logging.level", lambda x: LogLevel(x.upper())),
            "LOG_FORMAT": ("logging.format", str),
            "LOG_JSON": ("logging.json_format", _parse_bool),
        }

        for env_var, (config_path, converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value is not None:
                try:
                    self._set_nested_attr(self.config, config_path, converter(value))
                except (ValueError, TypeError) as e:
                    self.logger.warning(f"Invalid value for {env_var}: {value}, error: {e}")

    def _update_config_from_dict(self, data: Dict[str, Any], prefix: str = ""):
        """Update configuration from dictionary recursively"""
        for key, value in data.items():
            config_path = f"{prefix}.{key}" if prefix else key

            if isinstance(value, dict):
                self._update_config_from_dict(value, config_path)
            else:
                try:
                    # Handle enum conversions for file-based config
                    if config_path == "environment" and isinstance(value, str):
                        value = Environment(value.lower())
                    elif config_path == "logging.level" and isinstance(value, str):
                        value = LogLevel(value.upper())

                    self._set_nested_attr(self.config, config_path, value)

                except AttributeError:
                    self.logger.warning(f"Unknown configuration key: {config_path}")
                except ValueError as e:
                    self.logger.warning(f"Invalid value for {config_path}: {value}, error: {e}")

    def _set_nested_attr(self, obj: Any, path: str, value: Any):
        """Set nested attribute using dot notation"""
        parts = path.split(".")
        for part in parts[:-1]:
            obj = getattr(obj, part)
        if not hasattr(obj, parts[-1]):
            raise AttributeError(path)
        setattr(obj, parts[-1], value)

    def _validate_configuration(self):
        """Validate configuration settings"""
        errors = []

        store = self.config.store
        if store.dtype is not None:
            try:
                resolve_dtype(store.dtype)
            except ElementKindError as e:
                errors.append(f"EMBEDDING_DTYPE is invalid: {e}")

        if store.dimension is not None:
            if not _is_integer(store.dimension):
                errors.append(f"Embedding dimension must be an integer, got {store.dimension!r}")
            elif store.dimension <= 0:
                errors.append("Embedding dimension must be positive")

        if store.max_memory_usage is not None:
            if not _is_number(store.max_memory_usage):
                errors.append(
                    f"Max memory usage must be a number, got {store.max_memory_usage!r}"
                )
            elif store.max_memory_usage <= 0:
                errors.append("Max memory usage must be positive")

        search = self.config.search
        if not _is_number(search.minimum_score):
            errors.append(f"Search minimum score must be a number, got {search.minimum_score!r}")
        elif not -1.0 <= search.minimum_score <= 1.0:
            errors.append("Search minimum score must be between -1 and 1")

        if not _is_integer(search.maximum_results):
            errors.append(
                f"Search maximum results must be an integer, got {search.maximum_results!r}"
            )
        elif search.maximum_results < 0:
            errors.append("Search maximum results must be >= 0")

        if errors:
            raise ConfigValidationError(f"Configuration validation failed: {'; '.join(errors)}")

        self.logger.info("Configuration validation passed")

    def reload_configuration(self):
        """Reload configuration from all sources"""
        try:
            self._load_configuration()
            self.logger.info("Configuration reloaded successfully")
        except ConfigValidationError as e:
            self.logger.error(f"Failed to reload configuration: {e}")
            raise

    def get(self, path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation"""
        try:
            obj = self.config
            for part in path.split("."):
                obj = getattr(obj, part)
            return obj
        except AttributeError:
            return default

    def set(self, path: str, value: Any):
        """Set configuration value using dot notation"""
        self._set_nested_attr(self.config, path, value)
        self._validate_configuration()

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""

        def _asdict_recursive(obj):
            if hasattr(obj, "__dict__"):
                result = {}
                for key, value in obj.__dict__.items():
                    if isinstance(value, Enum):
                        result[key] = value.value
                    elif hasattr(value, "__dict__"):
                        result[key] = _asdict_recursive(value)
                    else:
                        result[key] = value
                return result
            return obj

        return _asdict_recursive(self.config)

    def save_to_file(self, filename: str, format: str = "yaml"):
        """Save current configuration to file"""
        file_path = self.config_dir / filename
        file_path.parent.mkdir(parents=True, exist_ok=True)
        config_dict = self.to_dict()

        with open(file_path, "w") as f:
            if format.lower() == "yaml":
                yaml.dump(config_dict, f, default_flow_style=False, indent=2)
            else:
                json.dump(config_dict, f, indent=2)

        self.logger.info(f"Configuration saved to {filename}")

    def get_store_config(self) -> Dict[str, Any]:
        """
        Get the configuration dictionary accepted by ``EmbeddingStore``.

        Returns:
            Dictionary with store, search and serialization settings
        """
        return {
            "dtype": self.config.store.dtype,
            "dimension": self.config.store.dimension,
            "max_memory_usage": self.config.store.max_memory_usage,
            "minimum_score": self.config.search.minimum_score,
            "maximum_results": self.config.search.maximum_results,
            "use_single_float": self.config.serialization.use_single_float,
        }


# Global configuration instance
_config_manager: Optional[ConfigManager] = None


def get_config() -> ConfigManager:
    """Get the global configuration manager instance"""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def init_config(config_dir: Optional[Union[str, Path]] = None) -> ConfigManager:
    """Initialize the global configuration manager"""
    global _config_manager
    _config_manager = ConfigManager(config_dir)
    return _config_manager
