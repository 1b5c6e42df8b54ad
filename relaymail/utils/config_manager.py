"""Configuration manager for settings stored as JSON."""

import json
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, Field, SecretStr, ValidationError

from relaymail.core.email.smtp.constants import DEFAULT_LOCAL_HOSTNAME, Timeouts
from relaymail.core.email.smtp.tls import TLSConfig

from .errors import FileSystemError, InvalidConfigError
from .logging import get_logger
from .paths import CONFIG_PATH

logger = get_logger(__name__)


class SMTPConfig(BaseModel):
    """Pydantic model for the SMTP server and account."""

    host: str = ""  # "host:port"
    local_hostname: str = DEFAULT_LOCAL_HOSTNAME
    timeout: float = Timeouts.SMTP_CONNECT  # in seconds
    implicit_tls: bool = False
    username: str = ""
    password: SecretStr = SecretStr("")
    auth_mechanism: Literal["PLAIN", "CRAM-MD5"] = "PLAIN"
    tls: Optional[TLSConfig] = None


class LoggingConfig(BaseModel):
    """Pydantic model for logging settings."""

    log_level: str = "INFO"
    console_level: str = "WARNING"
    log_dir: Optional[str] = None
    max_file_size: int = 5_242_880  # 5 MB
    backup_count: int = 5


class AppConfig(BaseModel):
    """Pydantic model for overall application configuration."""

    smtp: SMTPConfig = Field(default_factory=SMTPConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class ConfigManager:
    """Loads relaymail configuration from a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        self.path = Path(config_path) if config_path else CONFIG_PATH
        self.config = self._load_config()

    def _load_config(self) -> AppConfig:
        """Load configuration from file, or defaults if there is none."""

        if not self.path.exists():
            logger.info(f"No config file at {self.path}, using defaults.")
            return AppConfig()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            config = AppConfig(**data)
            logger.debug(f"Configuration loaded from {self.path}")
            return config

        except OSError as e:
            raise FileSystemError(f"Cannot read configuration file {self.path}: {e}") from e
        except json.JSONDecodeError as e:
            raise InvalidConfigError(f"Configuration file is not valid JSON: {str(e)}") from e
        except (TypeError, ValidationError) as e:
            raise InvalidConfigError(
                f"Configuration data does not match expected schema: {str(e)}"
            ) from e

    @property
    def smtp(self) -> SMTPConfig:
        return self.config.smtp

    def override_smtp(self, **values) -> SMTPConfig:
        """Apply command-line overrides; ``None`` values are ignored."""

        updates = {key: value for key, value in values.items() if value is not None}
        if updates:
            self.config.smtp = self.config.smtp.model_copy(update=updates)
        return self.config.smtp
