"""Shared configuration base classes only."""

from pydantic import Field
from pydantic_settings import BaseSettings


class BaseServiceConfig(BaseSettings):
    """Base configuration class for services to extend."""

    port: int = Field(8000, validation_alias="PORT")
    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",
        "populate_by_name": True,
    }
