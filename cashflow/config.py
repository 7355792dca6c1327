from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "CF_", "env_file": ".env", "env_file_encoding": "utf-8"}

    store_backend: Literal["memory", "sqlite"] = Field(default="sqlite")
    db_path: str = Field(default="cashflow.db")
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    uncategorized_label: str = Field(default="Uncategorized", min_length=1)
    command_timeout_seconds: float | None = Field(default=10.0, gt=0)
    cors_origins: str = Field(default="http://localhost:3000")
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000, gt=0)
