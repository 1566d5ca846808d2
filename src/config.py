"""
config.py

Runtime settings for the VDCR revision-turnaround API.

Values come from the environment (prefix VDCR_) or a local .env file:

    VDCR_LOG_LEVEL=DEBUG
    VDCR_PORT=8080
    VDCR_MCP_ENABLED=false
"""

from __future__ import annotations

import logging
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


class Settings(BaseSettings):
    app_name: str = "VDCR Revision Turnaround API"
    environment: str = "dev"          # dev | test | prod
    log_level: str = "INFO"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    reload: bool = False

    # Comma-separated list, "*" for any origin
    cors_allow_origins: str = "*"

    # Expose the API as MCP tools under /mcp
    mcp_enabled: bool = True

    model_config = SettingsConfigDict(
        env_prefix="VDCR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origins(self) -> List[str]:
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


settings = Settings()


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    root.setLevel(level.upper())
