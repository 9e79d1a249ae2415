"""Runtime settings read from the environment (and a .env file beside the project)."""

import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_ENV_FILE = Path(__file__).resolve().parent.parent / ".env"


class Settings(BaseModel):
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"
    history_limit: int = Field(default=100, ge=0)  # undo depth per conversation
    host: str = "127.0.0.1"
    port: int = 8000


def load_settings() -> Settings:
    """Build Settings from CHATTREE_* variables. Existing env vars win over .env."""
    load_dotenv(_ENV_FILE, override=False)

    values: dict = {}
    origins = os.environ.get("CHATTREE_CORS_ORIGINS")
    if origins:
        values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]
    if os.environ.get("CHATTREE_LOG_LEVEL"):
        values["log_level"] = os.environ["CHATTREE_LOG_LEVEL"].upper()
    if os.environ.get("CHATTREE_HISTORY_LIMIT"):
        values["history_limit"] = os.environ["CHATTREE_HISTORY_LIMIT"]
    if os.environ.get("CHATTREE_HOST"):
        values["host"] = os.environ["CHATTREE_HOST"]
    if os.environ.get("CHATTREE_PORT"):
        values["port"] = os.environ["CHATTREE_PORT"]
    return Settings.model_validate(values)
