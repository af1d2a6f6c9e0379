"""Verifier settings with Pydantic validation and environment loading."""

from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Verifier settings loaded from BOTCHECK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="BOTCHECK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Control plane
    control_plane_url: str = Field(
        default="http://127.0.0.1:8087",
        description="Base URL of the bot-management service",
    )
    http_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Per-request HTTP timeout in seconds (None keeps httpx's default)",
    )
    admin_user: str = Field(default="admin", min_length=1)
    password_file: str = Field(
        default=".password", description="Path of the locally stored admin password"
    )
    login_checks_status: bool = Field(
        default=False,
        description="Reject non-200 login responses before decoding the token",
    )

    # Instance settings written before spawning
    expected_nickname: str = Field(
        default="SinusBot via Travis CI",
        min_length=1,
        description="Nickname given to the instance and searched for on the voice server",
    )
    instance_server_host: str = Field(
        default="sinusbot.com",
        description="Voice server host written into the instance settings",
    )

    # Voice server query interface
    voice_host: str = Field(default="julia.ts3index.com")
    voice_query_port: int = Field(default=10011, ge=1, le=65535)
    voice_server_port: int = Field(
        default=1489, ge=1, le=65535, description="Virtual server selected by voice port"
    )
    voice_server_id: Optional[int] = Field(
        default=None, ge=1, description="Select the virtual server by id instead of port"
    )
    query_timeout: float = Field(default=10.0, gt=0)

    # Settling between spawn and presence check
    settle_mode: str = Field(
        default="fixed",
        description="fixed: one wait then one presence query; poll: query until found or timed out",
    )
    settle_delay: float = Field(default=5.0, ge=0)
    presence_timeout: float = Field(default=30.0, gt=0)
    presence_poll_interval: float = Field(default=2.0, gt=0)

    # Logging
    log_level: str = Field(
        default="INFO", description="Log level: DEBUG, INFO, WARNING, ERROR"
    )
    log_format: str = Field(default="text", description="Log format: json or text")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid:
            raise ValueError(f"log_level must be one of {valid}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"json", "text"}:
            raise ValueError("log_format must be 'json' or 'text'")
        return lower

    @field_validator("settle_mode")
    @classmethod
    def validate_settle_mode(cls, v: str) -> str:
        lower = v.lower()
        if lower not in {"poll", "fixed"}:
            raise ValueError("settle_mode must be 'poll' or 'fixed'")
        return lower

    @field_validator("control_plane_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    @property
    def polls_for_presence(self) -> bool:
        return self.settle_mode == "poll"
