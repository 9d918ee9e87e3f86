"""
System configuration package.

Provides consolidated system-level configuration for all services.

Exports:
    - SystemConfig: Complete system configuration dataclass
    - get_system_config: Get system config singleton
    - reload_system_config: Force reload system config
    - LoggerFactory: Factory for creating configured loggers
    - LoggingConfig: Logging configuration model
"""

from basketlever.system.config import (
    ConfigLoadError,
    SystemConfig,
    get_system_config,
    load_system_config,
    reload_system_config,
)
from basketlever.system.log_system import LoggerFactory, LoggingConfig

__all__ = [
    "ConfigLoadError",
    "SystemConfig",
    "get_system_config",
    "load_system_config",
    "reload_system_config",
    "LoggerFactory",
    "LoggingConfig",
]
