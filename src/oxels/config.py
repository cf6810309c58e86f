"""
Configuration management for oxels.

Provides environment-aware configuration with validation and type safety.
"""

import os
import sys
import logging
import logging.handlers
import configparser
from pathlib import Path
from typing import Optional
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import ConfigurationError


class LogLevel(Enum):
    """Enumeration for log levels."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class MetaImageConfig:
    """MetaImage read/write settings."""
    compress_by_default: bool = True
    compression_level: int = 6
    max_payload_bytes: Optional[int] = None
    raw_extension: str = ".raw"
    compressed_raw_extension: str = ".zraw"

    def sidecar_extension(self, compressed: bool) -> str:
        """Extension used for an external data file."""
        return self.compressed_raw_extension if compressed else self.raw_extension


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    level: LogLevel = LogLevel.INFO
    file_path: Optional[str] = None
    max_file_size_mb: int = 5
    backup_count: int = 3
    console_output: bool = True
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class OxelsConfig:
    """Main package configuration."""
    metaimage: MetaImageConfig = field(default_factory=MetaImageConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _parse_bool(value: str, name: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


def _parse_int(value: str, name: str) -> int:
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid integer for {name}: {value!r}")


def _parse_level(value: str) -> LogLevel:
    try:
        return LogLevel(value.strip().upper())
    except ValueError:
        raise ConfigurationError(f"Invalid log level: {value!r}")


class ConfigManager:
    """Configuration manager with environment support."""

    def __init__(self, config_file: Optional[str] = None, env_prefix: str = "OXELS"):
        self.config_file = config_file or self._find_config_file()
        self.env_prefix = env_prefix
        self._config: Optional[OxelsConfig] = None

    def _find_config_file(self) -> str:
        """Find configuration file in standard locations."""
        possible_paths = [
            "oxels.ini",
            os.path.expanduser("~/.oxels/config.ini"),
            os.path.expanduser("~/.config/oxels.ini"),
        ]

        for path in possible_paths:
            if os.path.exists(path):
                return path

        return "oxels.ini"

    def load_config(self) -> OxelsConfig:
        """Load configuration from file and environment variables."""
        if self._config is not None:
            return self._config

        config = OxelsConfig()

        if os.path.exists(self.config_file):
            self._load_from_file(config)

        self._load_from_env(config)
        self._validate_config(config)

        self._config = config
        return config

    def _load_from_file(self, config: OxelsConfig):
        """Load configuration from INI file."""
        parser = configparser.ConfigParser()
        try:
            parser.read(self.config_file)
        except configparser.Error as e:
            raise ConfigurationError(f"Cannot parse {self.config_file}: {e}")

        if parser.has_section("metaimage"):
            section = parser["metaimage"]
            try:
                config.metaimage.compress_by_default = section.getboolean(
                    "compress_by_default", config.metaimage.compress_by_default)
            except ValueError as e:
                raise ConfigurationError(f"Invalid compress_by_default: {e}")
            config.metaimage.compression_level = _parse_int(
                section.get("compression_level", str(config.metaimage.compression_level)),
                "compression_level")
            if max_bytes := section.get("max_payload_bytes", "").strip():
                config.metaimage.max_payload_bytes = _parse_int(max_bytes, "max_payload_bytes")
            config.metaimage.raw_extension = section.get(
                "raw_extension", config.metaimage.raw_extension)
            config.metaimage.compressed_raw_extension = section.get(
                "compressed_raw_extension", config.metaimage.compressed_raw_extension)

        if parser.has_section("logging"):
            section = parser["logging"]
            if level := section.get("level"):
                config.logging.level = _parse_level(level)
            config.logging.file_path = section.get("file_path") or None
            config.logging.max_file_size_mb = _parse_int(
                section.get("max_file_size_mb", str(config.logging.max_file_size_mb)),
                "max_file_size_mb")
            config.logging.backup_count = _parse_int(
                section.get("backup_count", str(config.logging.backup_count)),
                "backup_count")
            try:
                config.logging.console_output = section.getboolean(
                    "console_output", config.logging.console_output)
            except ValueError as e:
                raise ConfigurationError(f"Invalid console_output: {e}")

    def _load_from_env(self, config: OxelsConfig):
        """Load configuration from environment variables."""
        if env_val := os.getenv(f"{self.env_prefix}_COMPRESS"):
            config.metaimage.compress_by_default = _parse_bool(
                env_val, f"{self.env_prefix}_COMPRESS")
        if env_val := os.getenv(f"{self.env_prefix}_COMPRESSION_LEVEL"):
            config.metaimage.compression_level = _parse_int(
                env_val, f"{self.env_prefix}_COMPRESSION_LEVEL")
        if env_val := os.getenv(f"{self.env_prefix}_MAX_PAYLOAD_BYTES"):
            config.metaimage.max_payload_bytes = _parse_int(
                env_val, f"{self.env_prefix}_MAX_PAYLOAD_BYTES")
        if env_val := os.getenv(f"{self.env_prefix}_LOG_LEVEL"):
            config.logging.level = _parse_level(env_val)

    def _validate_config(self, config: OxelsConfig):
        """Validate configuration settings."""
        level = config.metaimage.compression_level
        if level != -1 and not 0 <= level <= 9:
            raise ConfigurationError(f"compression_level must be -1 or 0..9, got {level}")

        max_bytes = config.metaimage.max_payload_bytes
        if max_bytes is not None and max_bytes < 0:
            raise ConfigurationError("max_payload_bytes must not be negative")

        for name in ("raw_extension", "compressed_raw_extension"):
            if not getattr(config.metaimage, name).startswith("."):
                raise ConfigurationError(f"{name} must start with '.'")
        if config.metaimage.raw_extension == config.metaimage.compressed_raw_extension:
            raise ConfigurationError("raw and compressed sidecar extensions must differ")

        if config.logging.backup_count < 0:
            raise ConfigurationError("backup_count must not be negative")

    def save_config(self, config: OxelsConfig):
        """Save configuration to file."""
        parser = configparser.ConfigParser()

        parser.add_section("metaimage")
        parser["metaimage"]["compress_by_default"] = str(config.metaimage.compress_by_default)
        parser["metaimage"]["compression_level"] = str(config.metaimage.compression_level)
        if config.metaimage.max_payload_bytes is not None:
            parser["metaimage"]["max_payload_bytes"] = str(config.metaimage.max_payload_bytes)
        parser["metaimage"]["raw_extension"] = config.metaimage.raw_extension
        parser["metaimage"]["compressed_raw_extension"] = config.metaimage.compressed_raw_extension

        parser.add_section("logging")
        parser["logging"]["level"] = config.logging.level.value
        if config.logging.file_path:
            parser["logging"]["file_path"] = config.logging.file_path
        parser["logging"]["max_file_size_mb"] = str(config.logging.max_file_size_mb)
        parser["logging"]["backup_count"] = str(config.logging.backup_count)
        parser["logging"]["console_output"] = str(config.logging.console_output)

        directory = os.path.dirname(self.config_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.config_file, 'w') as f:
            parser.write(f)


# Global config manager instance
config_manager = ConfigManager()


def get_config() -> OxelsConfig:
    """Get the current package configuration."""
    return config_manager.load_config()


def reset_config(config_file: Optional[str] = None) -> None:
    """Replace the global config manager (mainly for testing)."""
    global config_manager
    config_manager = ConfigManager(config_file)


def configure_logging(config: Optional[LoggingConfig] = None) -> logging.Logger:
    """
    Attach handlers to the ``oxels`` logger according to ``config``.

    The library never calls this itself; applications that want oxels'
    log output on the console or in a rotating file call it once at startup.

    Returns:
        The configured ``oxels`` package logger.
    """
    config = config or get_config().logging
    package_logger = logging.getLogger("oxels")
    package_logger.setLevel(config.level.value)
    formatter = logging.Formatter(config.format)

    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()

    if config.file_path:
        Path(config.file_path).parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            config.file_path,
            maxBytes=config.max_file_size_mb * 1024 * 1024,
            backupCount=config.backup_count,
        )
        file_handler.setFormatter(formatter)
        package_logger.addHandler(file_handler)

    if config.console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        package_logger.addHandler(console_handler)

    return package_logger
