from typing import Literal

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import SettingsConfigDict


class Settings(BaseSettings):
    # === General ===
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8080, validation_alias="PORT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # === Storage ===
    storage_backend: Literal["file", "sql"] = Field(default="file", validation_alias="STORAGE_BACKEND")
    data_dir: str = Field(default="data", validation_alias="DATA_DIR")
    database_url: str = Field(default="sqlite:///./relay.db", validation_alias="DATABASE_URL")

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_pg_scheme(cls, v: str) -> str:
        # Render/Heroku sometimes provide 'postgres://'
        if v and v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg://", 1)
        return v

    # === Delivery ===
    persist_mode: Literal["background", "inline"] = Field(
        default="background", validation_alias="PERSIST_MODE"
    )
    persist_queue_size: int = Field(default=1000, gt=0, validation_alias="PERSIST_QUEUE_SIZE")
    outbox_size: int = Field(default=100, gt=0, validation_alias="OUTBOX_SIZE")
    send_timeout: float = Field(default=10.0, gt=0, validation_alias="SEND_TIMEOUT")

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
