"""
Configuration management for chat-sync.

Provides type-safe configuration loading from YAML/TOML files and environment variables.
"""
import os
from pathlib import Path
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, Field, ValidationError, field_validator
import yaml

from .exceptions import ConfigurationError


class LogLevel(str, Enum):
    """Logging level enumeration."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: LogLevel = Field(default=LogLevel.INFO, description="Log level")
    format: str = Field(default="human", description="Log format: human, json")
    file: Optional[str] = Field(default=None, description="Log file path")
    max_size: int = Field(default=10_000_000, description="Max log file size in bytes")
    backup_count: int = Field(default=5, description="Number of backup files to keep")


class StoreConfig(BaseModel):
    """In-memory chat store configuration."""
    chat_id_prefix: str = Field(default="c", description="Prefix for generated chat ids")
    message_id_prefix: str = Field(default="m", description="Prefix for generated message ids")
    user_id_prefix: str = Field(default="u", description="Prefix for generated user ids")

    @field_validator('chat_id_prefix', 'message_id_prefix', 'user_id_prefix')
    @classmethod
    def validate_prefix(cls, v):
        """Id prefixes must be non-empty so ids never collide with bare counters."""
        if not v:
            raise ValueError("id prefix must not be empty")
        return v


class UploadConfig(BaseModel):
    """Upload relay configuration."""
    host: str = Field(default="localhost", description="Upload relay host")
    port: int = Field(default=3000, description="Upload relay port")
    timeout: int = Field(default=60, description="Request timeout in seconds")

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class NotificationConfig(BaseModel):
    """Local notification configuration."""
    enabled: bool = Field(default=True, description="Show notifications for new messages")
    preview_length: int = Field(default=60, description="Maximum notification body length")


class TypingConfig(BaseModel):
    """Typing indicator configuration."""
    timeout: float = Field(default=3.0, description="Seconds of inactivity before typing stops")


class Config(BaseModel):
    """Main configuration model."""
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    typing: TypingConfig = Field(default_factory=TypingConfig)


def get_config_paths() -> List[Path]:
    """Get possible configuration file paths in order of preference."""
    paths = []

    # Current directory
    for ext in ['yaml', 'yml', 'toml']:
        paths.append(Path(f"chat-sync.{ext}"))

    # User config directory
    if config_home := os.getenv("XDG_CONFIG_HOME"):
        config_dir = Path(config_home) / "chat-sync"
    else:
        config_dir = Path.home() / ".config" / "chat-sync"

    for ext in ['yaml', 'yml', 'toml']:
        paths.append(config_dir / f"config.{ext}")

    return paths


def _read_config_file(config_path: Path) -> dict:
    if config_path.suffix in ['.yaml', '.yml']:
        with open(config_path, 'r') as f:
            return yaml.safe_load(f) or {}

    import tomllib
    with open(config_path, 'rb') as f:
        return tomllib.load(f)


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from files and environment variables."""
    config_data = {}

    candidates = [path] if path is not None else get_config_paths()
    for config_path in candidates:
        if config_path.exists():
            try:
                config_data.update(_read_config_file(config_path))
                break
            except yaml.YAMLError as e:
                print(f"Warning: Invalid YAML syntax in {config_path}: {e}")
                print("Using default configuration instead.")
            except PermissionError:
                print(f"Warning: No permission to read config file {config_path}")
            except Exception as e:
                print(f"Warning: Failed to load config from {config_path}: {e}")
                print("Using default configuration instead.")

    # Override with environment variables
    env_overrides = {}

    # Logging settings
    if log_level := os.getenv("CHAT_SYNC_LOG_LEVEL"):
        env_overrides.setdefault("logging", {})["level"] = log_level.upper()
    if log_file := os.getenv("CHAT_SYNC_LOG_FILE"):
        env_overrides.setdefault("logging", {})["file"] = log_file
    if log_format := os.getenv("CHAT_SYNC_LOG_FORMAT"):
        env_overrides.setdefault("logging", {})["format"] = log_format

    # Upload relay settings
    if upload_host := os.getenv("CHAT_SYNC_UPLOAD_HOST"):
        env_overrides.setdefault("upload", {})["host"] = upload_host
    if upload_port := os.getenv("CHAT_SYNC_UPLOAD_PORT"):
        try:
            env_overrides.setdefault("upload", {})["port"] = int(upload_port)
        except ValueError:
            print(f"Warning: Invalid port number in CHAT_SYNC_UPLOAD_PORT: {upload_port}")
            print("Using default port instead.")

    # Notification settings
    if notifications := os.getenv("CHAT_SYNC_NOTIFICATIONS"):
        env_overrides.setdefault("notifications", {})["enabled"] = (
            notifications.lower() in ("1", "true", "yes", "on")
        )

    # Typing settings
    if typing_timeout := os.getenv("CHAT_SYNC_TYPING_TIMEOUT"):
        try:
            env_overrides.setdefault("typing", {})["timeout"] = float(typing_timeout)
        except ValueError:
            print(f"Warning: Invalid number in CHAT_SYNC_TYPING_TIMEOUT: {typing_timeout}")
            print("Using default timeout instead.")

    # Merge configurations: defaults < file < environment
    final_config = dict(config_data)
    for section, values in env_overrides.items():
        final_config[section] = {**final_config.get(section, {}), **values}

    try:
        return Config(**final_config)
    except ValidationError as e:
        raise ConfigurationError(
            "Invalid configuration data",
            context={"path": str(path) if path else None, "errors": e.error_count()},
            cause=e,
        ) from e


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    """Save configuration to file."""
    if path is None:
        if config_home := os.getenv("XDG_CONFIG_HOME"):
            config_dir = Path(config_home) / "chat-sync"
        else:
            config_dir = Path.home() / ".config" / "chat-sync"

        config_dir.mkdir(parents=True, exist_ok=True)
        path = config_dir / "config.yaml"

    # mode="json" turns enums into their values for YAML
    config_dict = config.model_dump(mode="json")

    with open(path, 'w') as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)
    return path


# Global configuration instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config(path: Optional[Path] = None) -> Config:
    """Reload configuration from files."""
    global _config
    _config = load_config(path)
    return _config
