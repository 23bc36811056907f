# editor_db/core/config.py
"""Connection settings, loaded from the environment or a .env file."""

import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

from editor_db.core.exceptions import ConfigurationError

ENV_PREFIX = "EDITOR_DB_"


class DatabaseSettings(BaseModel):
    """Settings needed to open a Database."""

    db_type: str
    url: str
    command_timeout: Optional[float] = None
    echo: bool = False

    @field_validator("db_type")
    @classmethod
    def normalise_db_type(cls, value: str) -> str:
        return value.strip().lower()

    @field_validator("command_timeout")
    @classmethod
    def positive_timeout(cls, value: Optional[float]) -> Optional[float]:
        if value is not None and value <= 0:
            raise ValueError("command_timeout must be a positive number of seconds")
        return value

    def engine_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for sqlalchemy.create_engine."""
        kwargs: Dict[str, Any] = {"echo": self.echo}
        if self.url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        return kwargs

    @classmethod
    def from_env(cls) -> "DatabaseSettings":
        """Build settings from EDITOR_DB_* environment variables."""
        load_dotenv()

        db_type = os.getenv(f"{ENV_PREFIX}TYPE")
        url = os.getenv(f"{ENV_PREFIX}URL")
        if not db_type or not url:
            raise ConfigurationError(
                f"{ENV_PREFIX}TYPE and {ENV_PREFIX}URL must both be set"
            )

        timeout = os.getenv(f"{ENV_PREFIX}COMMAND_TIMEOUT")
        echo = os.getenv(f"{ENV_PREFIX}ECHO", "false").lower() == "true"

        return cls(
            db_type=db_type,
            url=url,
            command_timeout=float(timeout) if timeout else None,
            echo=echo,
        )
