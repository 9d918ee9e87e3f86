"""
System configuration.

One configuration for the whole system, loaded from YAML and deep-merged over
built-in defaults. String values support ${VAR} and ${VAR:-default}
environment substitution.

Configuration file locations (checked in order):
1. Path passed to load_system_config()
2. $BASKETLEVER_CONFIG
3. ./config/basketlever.yaml (project-relative)
4. ~/.basketlever/config.yaml (user home)
5. Built-in defaults

Example basketlever.yaml:
    logging:
      level: DEBUG
      format: console
    leverage:
      protocol_fee_bps: 25
      fee_recipient: "${FEE_RECIPIENT:-0xfeed}"
    events:
      max_history: 10000
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from basketlever.system.log_system import LoggingConfig as LoggerConfig

CONFIG_ENV_VAR = "BASKETLEVER_CONFIG"


class ConfigLoadError(Exception):
    """Raised when a configuration file cannot be read or is malformed."""


@dataclass
class LoggingSettings:
    """Logging section of the system config (mirrors LoggingConfig fields)."""

    level: str = "INFO"
    format: str = "console"
    timestamp_format: str = "compact"
    enable_file: bool = False
    file_path: Optional[str] = None
    file_level: str = "WARNING"
    file_rotation: bool = True
    max_file_size_mb: int = 10
    backup_count: int = 3
    enable_event_display: bool = True

    def to_logger_config(self) -> LoggerConfig:
        """Build the pydantic LoggingConfig consumed by LoggerFactory."""
        return LoggerConfig(
            level=self.level.upper(),  # type: ignore[arg-type]
            format=self.format,  # type: ignore[arg-type]
            timestamp_format=self.timestamp_format,  # type: ignore[arg-type]
            enable_file=self.enable_file,
            file_path=Path(self.file_path) if self.file_path else None,
            file_level=self.file_level.upper(),  # type: ignore[arg-type]
            file_rotation=self.file_rotation,
            max_file_size_mb=self.max_file_size_mb,
            backup_count=self.backup_count,
            enable_event_display=self.enable_event_display,
        )


@dataclass
class LeverageSettings:
    """Leverage module settings.

    Attributes:
        protocol_fee_bps: Fee taken from every trade's received amount, in basis points
        fee_recipient: Address that receives protocol fees
        default_issuance_module_name: Integration name the debt-issuance orchestrator
            is registered under for the leverage module
        sync_after_component_hooks: Re-derive position units once the orchestrator finishes each issue or redeem
    """

    protocol_fee_bps: int = 0
    fee_recipient: str = "0xfee0000000000000000000000000000000000000"
    default_issuance_module_name: str = "DefaultIssuanceModule"
    sync_after_component_hooks: bool = False

    def __post_init__(self) -> None:
        """Validate fee bounds."""
        if self.protocol_fee_bps < 0 or self.protocol_fee_bps > 10_000:
            raise ValueError(f"protocol_fee_bps must be within [0, 10000], got {self.protocol_fee_bps}")
        if not self.default_issuance_module_name:
            raise ValueError("default_issuance_module_name cannot be empty")


@dataclass
class EventSettings:
    """Event bus settings."""

    max_history: int = 100_000
    display_events: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.max_history < 0:
            raise ValueError(f"max_history cannot be negative, got {self.max_history}")


@dataclass
class SystemConfig:
    """Complete system configuration."""

    logging: LoggingSettings = field(default_factory=LoggingSettings)
    leverage: LeverageSettings = field(default_factory=LeverageSettings)
    events: EventSettings = field(default_factory=EventSettings)
    source_path: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source_path: Optional[Path] = None) -> "SystemConfig":
        """Build config from a (partial) dict, filling gaps with defaults."""
        merged = _deep_merge(_defaults_as_dict(), data or {})
        unknown = set(merged) - {"logging", "leverage", "events"}
        if unknown:
            raise ConfigLoadError(f"Unknown config sections: {sorted(unknown)}")
        try:
            return cls(
                logging=LoggingSettings(**merged["logging"]),
                leverage=LeverageSettings(**merged["leverage"]),
                events=EventSettings(**merged["events"]),
                source_path=source_path,
            )
        except TypeError as e:
            raise ConfigLoadError(f"Invalid config keys: {e}") from e


def _defaults_as_dict() -> Dict[str, Any]:
    defaults = SystemConfig()
    return {
        "logging": dict(vars(defaults.logging)),
        "leverage": dict(vars(defaults.leverage)),
        "events": {"max_history": defaults.events.max_history, "display_events": []},
    }


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base, returning a new dict."""
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _substitute_env_vars(value: Any) -> Any:
    """
    Substitute environment variables in config values.

    Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
    Nested dicts and lists are processed recursively.

    Raises:
        ConfigLoadError: If referenced environment variable not found and no default.
    """
    if isinstance(value, str) and value.startswith("${") and value.endswith("}"):
        var_expr = value[2:-1]
        if ":-" in var_expr:
            var_name, default_value = var_expr.split(":-", 1)
            return os.environ.get(var_name, default_value)
        if var_expr not in os.environ:
            raise ConfigLoadError(f"Environment variable not set: {var_expr}")
        return os.environ[var_expr]
    if isinstance(value, dict):
        return {k: _substitute_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_substitute_env_vars(v) for v in value]
    return value


def _find_config(config_path: Optional[str | Path]) -> Optional[Path]:
    if config_path:
        path = Path(config_path).expanduser()
        if path.exists():
            return path
        raise ConfigLoadError(f"Config file not found: {config_path}")

    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        path = Path(env_path).expanduser()
        if path.exists():
            return path
        raise ConfigLoadError(f"Config file from ${CONFIG_ENV_VAR} not found: {env_path}")

    candidates = [
        Path("config/basketlever.yaml"),
        Path.home() / ".basketlever" / "config.yaml",
    ]
    for path in candidates:
        if path.exists():
            return path
    return None


def load_system_config(config_path: Optional[str | Path] = None) -> SystemConfig:
    """
    Load system configuration.

    Args:
        config_path: Explicit YAML path (highest priority).

    Returns:
        SystemConfig (defaults when no file is found).

    Raises:
        ConfigLoadError: If the file is missing, unreadable or malformed.
    """
    path = _find_config(config_path)
    if path is None:
        return SystemConfig()

    try:
        with open(path, encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigLoadError(f"Invalid config format in {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigLoadError(f"Invalid config format in {path}. Expected a mapping at top level.")

    try:
        return SystemConfig.from_dict(_substitute_env_vars(raw), source_path=path)
    except ValueError as e:
        raise ConfigLoadError(f"Invalid config in {path}: {e}") from e


_system_config: Optional[SystemConfig] = None


def get_system_config() -> SystemConfig:
    """Get system config singleton (loaded lazily)."""
    global _system_config
    if _system_config is None:
        _system_config = load_system_config()
    return _system_config


def reload_system_config(config_path: Optional[str | Path] = None) -> SystemConfig:
    """Force reload of the system config singleton."""
    global _system_config
    _system_config = load_system_config(config_path)
    return _system_config
