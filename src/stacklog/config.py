"""
Logging Configuration.

Environment-driven settings for the default handler. Every field can be set
through a ``STACKLOG_`` prefixed variable; the project also falls back to
``GOOGLE_CLOUD_PROJECT``, which Cloud Shell, Cloud Run and App Engine set.
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class LoggingSettings(BaseSettings):
    """Default handler configuration."""

    model_config = SettingsConfigDict(
        env_prefix="STACKLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    project_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("STACKLOG_PROJECT_ID", "GOOGLE_CLOUD_PROJECT"),
        description="Google Cloud project ID; enables log names and trace correlation",
    )
    level: LogLevel = Field(default=LogLevel.INFO, description="Minimum log level")
    add_source: bool = Field(default=False, description="Attach source location to entries")
    add_indent: bool = Field(default=False, description="Pretty-print JSON output")
    stream: Literal["stderr", "stdout"] = Field(default="stderr", description="Output stream")
