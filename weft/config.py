"""
weft Configuration System

Layered configuration with YAML files, environment variables and validation.

Configuration Sources (in order of precedence):
    1. Environment variables (WEFT_*)
    2. Explicit config file (--config)
    3. Project config file (./weft.yaml)
    4. User config file (~/.weft/config.yaml)
    5. Default values
"""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar, Union

import yaml

from weft.core import load_yaml

T = TypeVar("T")

ON_ERROR_POLICIES = ("abort", "continue")


class ConfigError(Exception):
    """Configuration error."""
    pass


class ValidationError(ConfigError):
    """Configuration validation error."""
    pass


@dataclass
class ConfigValue(Generic[T]):
    """
    A single configuration value with metadata.

    Supports default values, environment variable binding and validation.
    """
    default: T
    env_var: Optional[str] = None
    description: str = ""
    validator: Optional[Callable[[T], bool]] = None
    _value: Optional[T] = field(default=None, repr=False)

    def get(self) -> T:
        """Get the current value."""
        if self.env_var and self.env_var in os.environ:
            return self._coerce(os.environ[self.env_var])
        return self._value if self._value is not None else self.default

    def require(self, name: str = "") -> T:
        """Current value, raising ValidationError if it cannot be coerced or validated."""
        source = self.env_var if self.env_var and self.env_var in os.environ else name
        try:
            value = self.get()
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid value for {source}: {e}") from e
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for {source}: {value!r}")
        return value

    def set(self, value: Any) -> None:
        """Set the value with validation."""
        if isinstance(value, str) and not isinstance(self.default, str):
            value = self._coerce(value)
        if self.validator and not self.validator(value):
            raise ValidationError(f"Invalid value for config: {value}")
        self._value = value

    def _coerce(self, value: str) -> T:
        """Coerce string value to target type."""
        target_type = type(self.default)

        if target_type == bool:
            return value.lower() in ("true", "1", "yes", "on")  # type: ignore
        elif target_type == int:
            return int(value)  # type: ignore
        elif target_type == float:
            return float(value)  # type: ignore
        else:
            return value  # type: ignore


def extract_values(obj: Any) -> Any:
    """Current values of a config section (or a single ConfigValue)."""
    if isinstance(obj, ConfigValue):
        return obj.get()
    elif hasattr(obj, "__dataclass_fields__"):
        return {k: extract_values(getattr(obj, k)) for k in obj.__dataclass_fields__}
    return obj


@dataclass
class WalletConfig:
    """Configuration for application wallets."""
    compat: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=False,
        env_var="WEFT_WALLET_COMPAT",
        description="Write wallet entries in the compat (earlier SDK) format",
    ))


@dataclass
class MicrofabConfig:
    """Configuration for topology processing."""
    container: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="microfab",
        env_var="WEFT_MICROFAB_CONTAINER",
        description="Container holding the network's MSP artifacts",
        validator=lambda x: bool(x),
    ))
    data_dir: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="/opt/microfab/data",
        env_var="WEFT_MICROFAB_DATA_DIR",
        description="Data directory inside the container",
        validator=lambda x: str(x).startswith("/"),
    ))
    fetch_artifacts: ConfigValue[bool] = field(default_factory=lambda: ConfigValue(
        default=True,
        env_var="WEFT_MICROFAB_FETCH",
        description="Fetch CA certificate and config.yaml from the container",
    ))
    on_error: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="abort",
        env_var="WEFT_MICROFAB_ON_ERROR",
        description="Entry failure policy (abort, continue)",
        validator=lambda x: x in ON_ERROR_POLICIES,
    ))


@dataclass
class ShellConfig:
    """Configuration for external command execution."""
    timeout_seconds: ConfigValue[int] = field(default_factory=lambda: ConfigValue(
        default=60,
        env_var="WEFT_SHELL_TIMEOUT",
        description="Per-command timeout in seconds",
        validator=lambda x: x > 0,
    ))


@dataclass
class ObservabilityConfig:
    """Configuration for logging."""
    log_level: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="info",
        env_var="WEFT_LOG_LEVEL",
        description="Log level (debug, info, warning, error)",
        validator=lambda x: x in ("debug", "info", "warning", "error", "critical"),
    ))
    log_format: ConfigValue[str] = field(default_factory=lambda: ConfigValue(
        default="text",
        env_var="WEFT_LOG_FORMAT",
        description="Log format (text, json)",
        validator=lambda x: x in ("json", "text"),
    ))


@dataclass
class WeftConfig:
    """Root configuration."""
    wallet: WalletConfig = field(default_factory=WalletConfig)
    microfab: MicrofabConfig = field(default_factory=MicrofabConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return extract_values(self)

    def to_yaml(self) -> str:
        return yaml.dump(self.to_dict(), default_flow_style=False)


class ConfigManager:
    """
    Configuration manager with file loading and environment binding.

    Thread-safe singleton; ``reset()`` drops loaded values.
    """

    _instance: Optional["ConfigManager"] = None
    _lock = threading.Lock()

    def __new__(cls) -> "ConfigManager":
        with cls._lock:
            if cls._instance is None:
                cls._instance = super().__new__(cls)
                cls._instance._initialized = False
            return cls._instance

    def __init__(self):
        if self._initialized:
            return

        self._config = WeftConfig()
        self._config_paths: List[Path] = []
        self._initialized = True

    @property
    def config(self) -> WeftConfig:
        return self._config

    @property
    def loaded_paths(self) -> List[Path]:
        return list(self._config_paths)

    def reset(self) -> None:
        self._config = WeftConfig()
        self._config_paths = []

    def load_from_file(self, path: Union[str, Path]) -> None:
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            data = load_yaml(path)
        except yaml.YAMLError as ex:
            raise ConfigError(f"Invalid YAML in {path}: {ex}") from ex

        if data:
            if not isinstance(data, dict):
                raise ConfigError(f"Configuration file must be a mapping: {path}")
            self._apply_dict(data)
        self._config_paths.append(path)

    def load_defaults(self) -> None:
        """Load default configuration files if they exist (lowest precedence first)."""
        default_paths = [
            Path.home() / ".weft" / "config.yaml",
            Path("weft.yaml"),
        ]

        for path in default_paths:
            if path.exists():
                self.load_from_file(path)

    def _apply_dict(self, data: Dict[str, Any]) -> None:
        """Apply dictionary values to configuration."""
        def apply_to_config(config_obj: Any, values: Dict[str, Any], prefix: str) -> None:
            for key, value in values.items():
                if not hasattr(config_obj, key):
                    raise ConfigError(f"Unknown config key: {prefix}{key}")
                attr = getattr(config_obj, key)
                if isinstance(attr, ConfigValue):
                    attr.set(value)
                elif hasattr(attr, "__dataclass_fields__") and isinstance(value, dict):
                    apply_to_config(attr, value, f"{prefix}{key}.")

        apply_to_config(self._config, data, "")

    def _resolve(self, path: str) -> Any:
        obj: Any = self._config
        for part in path.split("."):
            if not hasattr(obj, part):
                raise ConfigError(f"Invalid config path: {path}")
            obj = getattr(obj, part)
        return obj

    def set(self, path: str, value: Any) -> None:
        """
        Set a configuration value by path.

        Example: config.set("microfab.on_error", "continue")
        """
        attr = self._resolve(path)
        if not isinstance(attr, ConfigValue):
            raise ConfigError(f"Invalid config path: {path}")
        attr.set(value)

    def get(self, path: str) -> Any:
        """
        Get a configuration value by path.

        Example: config.get("shell.timeout_seconds")
        """
        return extract_values(self._resolve(path))

    def validate(self) -> List[str]:
        """
        Validate all configuration values.

        Returns list of validation errors.
        """
        errors: List[str] = []

        def validate_config(obj: Any, path: str = "") -> None:
            if isinstance(obj, ConfigValue):
                try:
                    value = obj.get()
                    if obj.validator and not obj.validator(value):
                        errors.append(f"{path}: validation failed for value {value}")
                except (TypeError, ValueError) as e:
                    errors.append(f"{path}: {e}")
            elif hasattr(obj, "__dataclass_fields__"):
                for field_name in obj.__dataclass_fields__:
                    field_path = f"{path}.{field_name}" if path else field_name
                    validate_config(getattr(obj, field_name), field_path)

        validate_config(self._config)
        return errors


def get_config() -> WeftConfig:
    """Get the current weft configuration."""
    return ConfigManager().config


def get_config_manager() -> ConfigManager:
    """Get the configuration manager instance."""
    return ConfigManager()
