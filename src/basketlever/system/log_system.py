"""
Structured logging for basketlever.

structlog renders through stdlib logging handlers: a console handler (colored
key=value lines or JSON) and an optional JSON file handler. Levels used across
the package:

- INFO: module initialized, lever/delever/sync completed, basket fully delevered
- DEBUG: every lending-market and exchange call, event-bus subscriptions
- WARNING: guard rejections (authorization, preconditions, slippage)
- ERROR: external call failures propagated to the caller
"""

import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Literal

import structlog
from pydantic import BaseModel, Field

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class LoggingConfig(BaseModel):
    """Logging settings. Timestamps: iso, compact (YYMMDD-HHMMSS.cc), time, short (MMDDTHHMMSS)."""

    level: LogLevel = Field(
        default="INFO",
        description="Minimum log level (INFO=operations, DEBUG=every external call, WARNING=rejections only)",
    )
    format: Literal["console", "json"] = Field(
        default="console",
        description="Output format: console, or json",
    )
    timestamp_format: Literal["iso", "compact", "time", "short"] = Field(
        default="compact",
        description="Timestamp format for console output",
    )
    enable_file: bool = Field(
        default=False,
        description="Enable logging to file (WARNING and above by default)",
    )
    file_path: Path | None = Field(
        default=None,
        description="Path to log file (uses logs/basketlever.log if None)",
    )
    file_level: LogLevel = Field(
        default="WARNING",
        description="Minimum log level for file output",
    )
    file_rotation: bool = Field(
        default=True,
        description="Enable log file rotation (when file gets too large)",
    )
    max_file_size_mb: int = Field(
        default=10,
        description="Maximum log file size in MB before rotation",
    )
    backup_count: int = Field(
        default=3,
        description="Number of rotated log files to keep",
    )
    enable_event_display: bool = Field(
        default=True,
        description="Enable formatted display for leverage events published on the bus",
    )


_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_GRAY = "\033[90m"
_RESET = "\033[0m"

_TIMESTAMP_FORMATS: dict[str, Callable[[datetime], str]] = {
    "iso": lambda now: now.isoformat(),
    "compact": lambda now: now.strftime("%y%m%d-%H%M%S.") + f"{now.microsecond // 10000:02d}",
    "time": lambda now: now.strftime("%H:%M:%S.") + f"{now.microsecond // 10000:02d}",
    "short": lambda now: now.strftime("%m%dT%H%M%S"),
}

# Market ids are 32-byte hex digests; anything longer than this is abbreviated on the console.
_MAX_HEX_WIDTH = 14

_EVENT_DISPLAY = "event.display"
_EVENT_LOGGER_PREFIX = "basketlever.events."


def _abbreviate(value: Any) -> Any:
    if isinstance(value, str) and value.startswith("0x") and len(value) > _MAX_HEX_WIDTH:
        return f"{value[:8]}…{value[-4:]}"
    return value


def _add_log_timestamp(fmt: str) -> Callable[[Any, str, dict[str, Any]], dict[str, Any]]:
    """Processor stamping UTC time under 'log_timestamp' so event fields named 'timestamp' survive."""
    render = _TIMESTAMP_FORMATS.get(fmt, _TIMESTAMP_FORMATS["iso"])

    def processor(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict["log_timestamp"] = render(datetime.now(timezone.utc))
        return event_dict

    return processor


class LoggerFactory:
    """
    Process-wide structlog setup.

    configure() wires structlog into stdlib logging once (console handler plus an
    optional rotating JSON file); get_logger() hands out loggers named after the
    calling module.

    Example:
        LoggerFactory.configure(LoggingConfig(level="DEBUG", format="json"))
        logger = LoggerFactory.get_logger()
        logger.info("leverage.lever.completed", basket="0xbasket", borrowed=1000)
    """

    _config: LoggingConfig | None = None
    _configured: bool = False

    @classmethod
    def configure(cls, config: LoggingConfig | None = None) -> None:
        """
        Configure logging. Reconfiguring replaces the previous handlers.

        Args:
            config: Logging settings (default: LoggingConfig())
        """
        config = config if config is not None else LoggingConfig()
        cls._config = config

        pre_chain = cls._pre_chain(config.timestamp_format)
        renderer: Any = cls._custom_console_renderer() if config.format == "console" else structlog.processors.JSONRenderer()

        console = logging.StreamHandler(stream=sys.stdout)
        console.setLevel(config.level)
        console.setFormatter(structlog.stdlib.ProcessorFormatter(processor=renderer, foreign_pre_chain=pre_chain))
        handlers: list[logging.Handler] = [console]

        root_level = logging.getLevelName(config.level)
        if config.enable_file:
            file_path = config.file_path or Path("logs/basketlever.log")
            config.file_path = file_path
            handlers.append(cls._file_handler(config, file_path, pre_chain))
            root_level = min(root_level, logging.getLevelName(config.file_level))

        logging.basicConfig(level=root_level, handlers=handlers, force=True)

        if config.format == "console":
            exception_processors: list[Any] = [
                structlog.dev.set_exc_info,
                structlog.processors.ExceptionRenderer(structlog.dev.plain_traceback),  # type: ignore[arg-type]
            ]
        else:
            exception_processors = [structlog.processors.format_exc_info]

        structlog.configure(
            processors=[*pre_chain, *exception_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        cls._configured = True

    @staticmethod
    def _pre_chain(timestamp_format: str) -> list[Any]:
        return [
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            _add_log_timestamp(timestamp_format),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.CallsiteParameterAdder(
                [structlog.processors.CallsiteParameter.FILENAME, structlog.processors.CallsiteParameter.LINENO]
            ),
        ]

    @staticmethod
    def _custom_console_renderer() -> Callable[[Any, str, dict[str, Any]], str]:
        """
        Renderer for console output.

        Entries logged by the event bus as 'event.display' go through the
        per-event formatters (or are dropped when event display is off).
        Everything else renders as: timestamp [level] event | key=value ... (logger.file:line)
        """
        counters: dict[str, int] = {}
        show_events = LoggerFactory.get_config().enable_event_display

        def renderer(logger: Any, name: str, event_dict: dict[str, Any]) -> str:
            logger_name = event_dict.pop("logger", "")
            event = event_dict.pop("event", "")

            if event == _EVENT_DISPLAY and logger_name.startswith(_EVENT_LOGGER_PREFIX):
                if not show_events:
                    raise structlog.DropEvent
                for key in ("log_timestamp", "level", "filename", "lineno"):
                    event_dict.pop(key, None)
                return _EventFormatters.format_event(event_dict, counters)

            timestamp = event_dict.pop("log_timestamp", "")
            level = str(event_dict.pop("level", "info")).upper()
            filename = event_dict.pop("filename", "")
            lineno = event_dict.pop("lineno", "")

            parts = [timestamp, f"[{_LEVEL_COLORS.get(level, '')}{level.lower()}{_RESET}]", event]

            context = " ".join(
                f"{key}={_abbreviate(value)}" for key, value in sorted(event_dict.items()) if not key.startswith("_")
            )
            if context:
                parts.append(f"{_GRAY}|{_RESET} {context}")

            if filename and lineno:
                where = f"{Path(filename).stem}:{lineno}"
                if logger_name and logger_name != "basketlever":
                    where = f"{logger_name}.{where}"
                parts.append(f"{_GRAY}({where}){_RESET}")

            return " ".join(parts)

        return renderer

    @staticmethod
    def _file_handler(config: LoggingConfig, file_path: Path, pre_chain: list[Any]) -> logging.Handler:
        """JSON lines file handler, rotating by size unless rotation is disabled."""
        file_path.parent.mkdir(parents=True, exist_ok=True)

        handler: logging.Handler
        if config.file_rotation:
            handler = RotatingFileHandler(
                file_path,
                maxBytes=config.max_file_size_mb * 1024 * 1024,
                backupCount=config.backup_count,
                encoding="utf-8",
            )
        else:
            handler = logging.FileHandler(file_path, encoding="utf-8")

        handler.setLevel(config.file_level)
        handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(processor=structlog.processors.JSONRenderer(), foreign_pre_chain=pre_chain)
        )
        return handler

    @classmethod
    def get_logger(cls, name: str | None = None):
        """
        Return a structlog logger, configuring defaults on first use.

        Args:
            name: Logger name (default: the calling module's __name__)
        """
        if not cls._configured:
            cls.configure()

        if name is None:
            caller = sys._getframe(1)
            name = caller.f_globals.get("__name__", "basketlever")

        return structlog.get_logger(name)

    @classmethod
    def get_config(cls) -> LoggingConfig:
        return cls._config if cls._config is not None else LoggingConfig()

    @classmethod
    def is_configured(cls) -> bool:
        return cls._configured

    @classmethod
    def reset(cls) -> None:
        """Drop handlers and structlog configuration (tests reconfigure from scratch)."""
        root_logger = logging.getLogger()
        for handler in list(root_logger.handlers):
            root_logger.removeHandler(handler)
            handler.close()
        root_logger.setLevel(logging.NOTSET)
        cls._config = None
        cls._configured = False
        structlog.reset_defaults()


class _EventFormatters:
    """One-line console summaries of leverage events published on the bus."""

    CYAN = "\033[36m"
    MAGENTA = "\033[35m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    DIM = "\033[2m"
    BOLD = "\033[1m"
    RESET = "\033[0m"

    @classmethod
    def format_event(cls, event_dict: dict[str, Any], counters: dict[str, int]) -> str:
        """Dispatch on event_type; the counter numbers occurrences per type."""
        event_type = event_dict.get("event_type", "unknown")
        counters[event_type] = counters.get(event_type, 0) + 1
        count = counters[event_type]

        formatter = {
            "leverage_increased": cls.format_leverage_increased,
            "leverage_decreased": cls.format_leverage_decreased,
            "fully_delevered": cls.format_fully_delevered,
            "positions_synced": cls.format_positions_synced,
            "collateral_position_entered": cls.format_collateral_entered,
        }.get(event_type)
        if formatter is None:
            return f"{cls.DIM}• {event_type} #{count}{cls.RESET} | {cls.CYAN}{event_dict}{cls.RESET}"
        return formatter(event_dict, count)

    @classmethod
    def _line(cls, color: str, glyph: str, label: str, count: int, event_dict: dict[str, Any], *fields: str) -> str:
        head = [
            f"  {cls.DIM}└─{cls.RESET}",
            f"{color}{glyph}  {label:<12}#{count:<3}{cls.RESET}",
            f"{cls.MAGENTA}{event_dict.get('basket_token', '?')}{cls.RESET}",
        ]
        return " | ".join(head + list(fields))

    @classmethod
    def format_leverage_increased(cls, event_dict: dict[str, Any], count: int) -> str:
        get = event_dict.get
        return cls._line(
            cls.GREEN,
            "▲",
            "Lever",
            count,
            event_dict,
            f"borrowed {get('borrow_asset', '?')} {get('total_borrow', '0')}",
            f"received {get('collateral_asset', '?')} {get('total_received', '0')}",
            f"{cls.DIM}fee {get('protocol_fee', '0')}{cls.RESET}",
        )

    @classmethod
    def format_leverage_decreased(cls, event_dict: dict[str, Any], count: int) -> str:
        get = event_dict.get
        return cls._line(
            cls.YELLOW,
            "▼",
            "Delever",
            count,
            event_dict,
            f"redeemed {get('collateral_asset', '?')} {get('total_redeem', '0')}",
            f"repaid {get('repay_asset', '?')} {get('total_repay', '0')}",
            f"{cls.DIM}fee {get('protocol_fee', '0')}{cls.RESET}",
        )

    @classmethod
    def format_fully_delevered(cls, event_dict: dict[str, Any], count: int) -> str:
        market_id = str(event_dict.get("market_id", "?"))
        return cls._line(cls.BOLD + cls.GREEN, "✓", "Flat debt", count, event_dict, f"market {market_id[:10]}")

    @classmethod
    def format_positions_synced(cls, event_dict: dict[str, Any], count: int) -> str:
        return cls._line(
            cls.CYAN,
            "⟳",
            "Sync",
            count,
            event_dict,
            f"collateral unit {event_dict.get('collateral_unit', '0')}",
            f"borrow unit {event_dict.get('borrow_unit', '0')}",
        )

    @classmethod
    def format_collateral_entered(cls, event_dict: dict[str, Any], count: int) -> str:
        return cls._line(
            cls.CYAN,
            "⇢",
            "Collateral",
            count,
            event_dict,
            f"supplied {event_dict.get('collateral_asset', '?')} {event_dict.get('collateral_supplied', '0')}",
        )
