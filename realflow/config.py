"""
Configuration management using Pydantic models.

Values come from ``config.yaml`` and can be overridden by environment
variables (optionally loaded from a ``.env`` file).
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Mapping

import pendulum
import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import ConfigurationError
from .domain.reconciler import UnmatchedPolicy

LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class DatabaseConfig(BaseModel):
    """SQL Server connection settings."""
    server: str = ""
    port: int = 1433
    database: str = ""
    user: str = ""
    password: str = ""
    driver: str = "ODBC Driver 17 for SQL Server"
    encrypt: bool = False
    trust_server_certificate: bool = True
    pool_max: int = 10
    idle_timeout: int = 30  # seconds before a pooled connection is recycled
    table: str = "[dbo].[realflow5m]"

    @field_validator("pool_max")
    @classmethod
    def validate_pool_max(cls, value: int) -> int:
        """Ensure the pool can hold at least one connection."""
        if value <= 0:
            raise ValueError("pool_max must be greater than zero")
        return value

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {value}")
        return value

    def missing_fields(self) -> List[str]:
        """Return the environment names of required settings that are empty."""
        required = {
            "DB_USER": self.user,
            "DB_PASSWORD": self.password,
            "DB_SERVER": self.server,
            "DB_DATABASE": self.database,
        }
        return [name for name, value in required.items() if not value]

    def connection_string(self) -> str:
        """Connection string safe for logs (password masked)."""
        return f"mssql://{self.user}:***@{self.server}:{self.port}/{self.database}"


class ServerConfig(BaseModel):
    """HTTP server settings."""
    host: str = "0.0.0.0"
    port: int = 3000
    cors_origins: List[str] = Field(default_factory=lambda: ["*"])

    @field_validator("port")
    @classmethod
    def validate_port(cls, value: int) -> int:
        if not 1 <= value <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {value}")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    comid: int = 98
    timezone: str = "Asia/Shanghai"
    unmatched_policy: UnmatchedPolicy = UnmatchedPolicy.DROP
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone is a known IANA name."""
        try:
            pendulum.timezone(value)
        except ValueError:
            raise ValueError(f"Unknown timezone: {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Normalise the log level name."""
        level = value.strip().upper() or "INFO"
        if level not in LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}"
            )
        return level

    def require_database(self) -> None:
        """
        Check that every required connection setting is present.

        Raises:
            ConfigurationError: If any setting is missing
        """
        missing = self.database.missing_fields()
        if missing:
            raise ConfigurationError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    @classmethod
    def load(
        cls,
        config_path: Path | None = None,
        environ: Mapping[str, str] | None = None
    ) -> "AppConfig":
        """
        Load configuration from YAML (when present) and apply environment overrides.

        A ``.env`` file in the working directory is read first; variables
        already set in the real environment take precedence over it.
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True), override=False)
            environ = os.environ

        path = config_path or get_default_config_path()
        if path.exists():
            data = cls.load_from_yaml(path).model_dump()
        elif config_path is not None:
            raise FileNotFoundError(f"Config file not found: {config_path}")
        else:
            data = {}

        return cls(**_merge_environment(data, environ))


# Environment variable -> (section, key)
_ENV_OVERRIDES: Dict[str, tuple] = {
    "DB_SERVER": ("database", "server"),
    "DB_PORT": ("database", "port"),
    "DB_DATABASE": ("database", "database"),
    "DB_USER": ("database", "user"),
    "DB_PASSWORD": ("database", "password"),
    "DB_DRIVER": ("database", "driver"),
    "DB_ENCRYPT": ("database", "encrypt"),
    "DB_TRUST_CERT": ("database", "trust_server_certificate"),
    "DB_POOL_MAX": ("database", "pool_max"),
    "DB_IDLE_TIMEOUT": ("database", "idle_timeout"),
    "HOST": ("server", "host"),
    "PORT": ("server", "port"),
    "REALFLOW_COMID": (None, "comid"),
    "REALFLOW_TIMEZONE": (None, "timezone"),
    "REALFLOW_UNMATCHED_POLICY": (None, "unmatched_policy"),
    "LOG_LEVEL": (None, "log_level"),
}


def _merge_environment(data: Dict[str, Any], environ: Mapping[str, str]) -> Dict[str, Any]:
    """Overlay environment variables onto a config mapping (pydantic coerces types)."""
    merged = {
        key: dict(value) if isinstance(value, dict) else value
        for key, value in data.items()
    }

    for env_name, (section, key) in _ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value is None or value.strip() == "":
            continue
        if section is None:
            merged[key] = value.strip()
        else:
            merged.setdefault(section, {})[key] = value.strip()

    return merged


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
