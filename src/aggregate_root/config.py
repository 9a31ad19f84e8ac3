"""Configuration for aggregate dispatch and logging."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class AggregateSettings(BaseSettings):
    """Settings for aggregate roots.

    Settings can be configured via environment variables with the `AGGREGATE_ROOT_` prefix.
    """

    model_config = SettingsConfigDict(env_prefix="AGGREGATE_ROOT_", extra="ignore")

    # "first" keeps the first handler declared for an event type, "error" refuses to dispatch
    ambiguous_handlers: Literal["first", "error"] = "first"

    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "console"

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Invalid log level: {v}")
        return level


@lru_cache
def get_settings() -> AggregateSettings:
    return AggregateSettings()
