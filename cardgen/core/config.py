from typing import Optional
from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import PostgresDsn


class PostgresSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    host: str = Field(alias="POSTGRES_HOST")
    port: int = Field(alias="POSTGRES_DB_PORT")
    db_name: str = Field(alias="POSTGRES_DB_NAME")
    user: str = Field(alias="POSTGRES_DB_USER")
    password: str = Field(alias="POSTGRES_DB_PASSWORD")

    @computed_field
    def connection_string(self) -> PostgresDsn:
        return PostgresDsn(
            f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.db_name}"
        )


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    name: str = Field(default="cardgen", alias="APP_NAME")
    version: str = Field(default="v1", alias="API_VERSION")
    port: int = Field(default=9000, alias="APP_PORT")
    mode: str = Field(default="prod", alias="MODE")
    jwt_secret: str = Field(alias="JWT_SECRET")
    create_tables: bool = Field(default=True, alias="CREATE_TABLES")

    @computed_field
    def is_production(self) -> bool:
        return self.mode != "dev"


class ProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    api_key: Optional[str] = Field(default=None, alias="PROVIDER_API_KEY")
    endpoint: str = Field(
        default="https://openrouter.ai/api/v1/chat/completions",
        alias="PROVIDER_ENDPOINT",
    )
    default_model: str = Field(
        default="openai/gpt-4o-mini", alias="PROVIDER_DEFAULT_MODEL"
    )
    timeout: float = Field(default=60.0, alias="PROVIDER_TIMEOUT")
    max_attempts: int = Field(default=3, alias="PROVIDER_MAX_ATTEMPTS")
    backoff_base: float = Field(default=1.0, alias="PROVIDER_BACKOFF_BASE")
    app_title: str = Field(default="cardgen", alias="PROVIDER_APP_TITLE")
    app_url: Optional[str] = Field(default=None, alias="PROVIDER_APP_URL")


class GenerationSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    min_chars: int = Field(default=1000, alias="GENERATION_MIN_CHARS")
    max_chars: int = Field(default=10000, alias="GENERATION_MAX_CHARS")
    error_max_length: int = Field(default=1000, alias="GENERATION_ERROR_MAX_LENGTH")
    queue_concurrency: int = Field(default=2, alias="GENERATION_QUEUE_CONCURRENCY")
    drain_timeout: Optional[float] = Field(default=30.0, alias="GENERATION_DRAIN_TIMEOUT")


class PollingSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )
    interval: float = Field(default=2.0, alias="POLL_INTERVAL_SECONDS")
    max_time: float = Field(default=45.0, alias="POLL_MAX_TIME_SECONDS")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=lambda: AppSettings())
    postgres: PostgresSettings = Field(default_factory=lambda: PostgresSettings())
    provider: ProviderSettings = Field(default_factory=lambda: ProviderSettings())
    generation: GenerationSettings = Field(
        default_factory=lambda: GenerationSettings()
    )
    polling: PollingSettings = Field(default_factory=lambda: PollingSettings())


settings = Settings()
