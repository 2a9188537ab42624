# src/fleet_reconciler/config/settings.py
import logging
from enum import Enum
from functools import lru_cache
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from fleet_reconciler.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Maximum size of the OpenVPN auto scaling group
MAX_FLEET_SIZE = 1

DEFAULT_DNS_TTL = 180
DEFAULT_COMMAND_TIMEOUT_SECONDS = 300


class CompletionMode(str, Enum):
    """Who releases the terminating lifecycle hold"""
    REMOTE_COMMAND = "remote-command"  # the backup command completes the hold on the instance
    DIRECT = "direct"                  # the scale-in handler completes the hold itself


class Settings(BaseSettings):
    """
    Single source of truth for reconciler settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Each Lambda is deployed with only the variables it needs, so most fields
    are optional here and checked with `require()` by the handler that uses them.

    Usage:
        from fleet_reconciler.config.settings import get_settings
        settings = get_settings()
        settings.require("hosted_zone", "dns_name")
    """

    # AWS Core Settings
    region: str = Field(
        default="us-east-1",
        description="Region used by every AWS client"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        description="Endpoint override for a local fake-AWS server"
    )

    # Scale-in (instance terminating) settings
    document_name: str = Field(
        default="OpenVpnInstanceTerminatingDocument",
        description="SSM command document that backs up the TLS certificate"
    )

    bucket_name: Optional[str] = Field(
        default=None,
        description="S3 bucket holding the certificate backup"
    )

    lifecycle_completion_mode: CompletionMode = Field(
        default=CompletionMode.REMOTE_COMMAND,
        description="remote-command or direct"
    )

    command_timeout_seconds: int = Field(
        default=DEFAULT_COMMAND_TIMEOUT_SECONDS,
        ge=30,
        description="TimeoutSeconds passed to ssm.send_command"
    )

    # Scale-out (instance launch) settings
    dns_name: Optional[str] = Field(
        default=None,
        description="Public hostname of the VPN endpoint"
    )

    hosted_zone: Optional[str] = Field(
        default=None,
        description="Route53 hosted zone id"
    )

    dns_ttl: int = Field(
        default=DEFAULT_DNS_TTL,
        gt=0,
        description="TTL of the VPN A record"
    )

    # Capacity setpoint settings
    desired_asg_size: Optional[int] = Field(
        default=None,
        description="Target desired capacity for the scheduled setpoint"
    )

    asg_group_name: Optional[str] = Field(
        default=None,
        description="Name of the OpenVPN auto scaling group"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator("desired_asg_size")
    @classmethod
    def validate_desired_asg_size(cls, v):
        """The fleet is pinned to at most one instance."""
        if v is not None and not 0 <= v <= MAX_FLEET_SIZE:
            raise ValueError(f"DESIRED_ASG_SIZE must be between 0 and {MAX_FLEET_SIZE}, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def normalize_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {v}")
        return level

    def require(self, *field_names: str) -> None:
        """Raise ConfigurationError naming every field that is unset."""
        missing = [name.upper() for name in field_names if getattr(self, name) in (None, "")]
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Invalid values (e.g. a non-integer DESIRED_ASG_SIZE) surface as
    ConfigurationError rather than a raw pydantic error.
    """
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e
