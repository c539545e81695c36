from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reprocessor.app.domain.models import ProcessorConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Processor. max_retries counts retries after the first attempt (max_retries + 1 attempts).
    max_workers: int = Field(5, gt=0, validation_alias="MAX_WORKERS")
    max_retries: int = Field(3, ge=0, validation_alias="MAX_RETRIES")
    backoff_base_ms: int = Field(100, gt=0, validation_alias="BACKOFF_BASE_MS")
    backoff_multiplier: float = Field(2.0, ge=1.0, validation_alias="BACKOFF_MULTIPLIER")
    max_iterations: int = Field(10, gt=0, validation_alias="MAX_ITERATIONS")

    work_function: str = Field("", validation_alias="WORK_FUNCTION")
    processing_deadline_seconds: float | None = Field(
        None,
        gt=0,
        validation_alias="PROCESSING_DEADLINE_SECONDS",
    )

    store_backend: str = Field("mongo", validation_alias="STORE_BACKEND")

    database_host: str = Field("localhost", validation_alias="DATABASE_HOST")
    database_port: int = Field(27017, validation_alias="DATABASE_PORT")
    database_user: str = Field("", validation_alias="DATABASE_USER")
    database_password: str = Field("", validation_alias="DATABASE_PASSWORD")
    database_name: str = Field("reprocessor", validation_alias="DATABASE_NAME")
    database_collection: str = Field("records", validation_alias="DATABASE_COLLECTION")
    database_connection_timeout_ms: int = Field(5000, validation_alias="DATABASE_CONNECTION_TIMEOUT_MS")

    # Store connection bootstrap, independent of the per-record retry budget.
    initial_backoff_seconds: float = Field(1.0, gt=0, validation_alias="INITIAL_BACKOFF_SECONDS")
    max_backoff_seconds: float = Field(30.0, gt=0, validation_alias="MAX_BACKOFF_SECONDS")
    max_connection_attempts: int = Field(10, gt=0, validation_alias="MAX_CONNECTION_ATTEMPTS")
    connect_backoff_multiplier: float = Field(2.0, ge=1.0, validation_alias="CONNECT_BACKOFF_MULTIPLIER")

    log_level: str = Field("INFO", validation_alias="LOG_LEVEL")
    log_json: bool = Field(False, validation_alias="LOG_JSON")

    def processor_config(self) -> ProcessorConfig:
        return ProcessorConfig(
            max_workers=self.max_workers,
            max_retries=self.max_retries,
            backoff_base_ms=self.backoff_base_ms,
            backoff_multiplier=self.backoff_multiplier,
            max_iterations=self.max_iterations,
        )
