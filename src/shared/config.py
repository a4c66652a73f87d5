"""Process settings read from the environment using pydantic-settings."""
from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class DebugSettings(BaseSettings):
    """Environment-level settings for the grpcdebug client."""
    config_path: str = Field(default="", validation_alias="GRPCDEBUG_CONFIG")
    log_level: str = Field(default="warning", validation_alias="GRPCDEBUG_LOG_LEVEL")
    log_format: str = Field(
        default="text", validation_alias="GRPCDEBUG_LOG_FORMAT"
    )
    xdg_config_home: str = Field(default="", validation_alias="XDG_CONFIG_HOME")

    model_config = {
        "populate_by_name": True,
        "extra": "ignore",
    }

    @property
    def json_logs(self) -> bool:
        return self.log_format.strip().lower() == "json"
