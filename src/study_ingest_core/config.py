from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from study_ingest_core.db import PostgresConfig
from study_ingest_core.retry import RetryConfig, LLM_RETRY


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    pg_dsn: str | None = Field(default=None, alias="PG_DSN")
    postgres_host: str | None = Field(default=None, alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(default=None, alias="POSTGRES_DB")
    postgres_user: str | None = Field(default=None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(default=None, alias="POSTGRES_PASSWORD")

    s3_endpoint: str | None = Field(default=None, alias="S3_ENDPOINT")
    s3_bucket: str = Field(alias="S3_BUCKET")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: SecretStr | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_region: str = Field(default="us-east-1", alias="S3_REGION")

    llm_base_url: str = Field(default="https://api.openai.com", alias="LLM_BASE_URL")
    llm_api_key: SecretStr | None = Field(default=None, alias="LLM_API_KEY")
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_timeout_s: float = Field(default=120.0, gt=0, alias="LLM_TIMEOUT_S")
    llm_retry_max_attempts: int = Field(default=3, ge=1, alias="LLM_RETRY_MAX_ATTEMPTS")
    llm_retry_initial_delay_s: float = Field(default=2.0, ge=0, alias="LLM_RETRY_INITIAL_DELAY_S")
    llm_retry_max_delay_s: float = Field(default=30.0, ge=0, alias="LLM_RETRY_MAX_DELAY_S")
    llm_retry_multiplier: float = Field(default=2.0, ge=1, alias="LLM_RETRY_MULTIPLIER")

    section_min_chars: int = Field(default=600, ge=0, alias="SECTION_MIN_CHARS")
    section_max_chars: int = Field(default=4500, gt=0, alias="SECTION_MAX_CHARS")
    section_heading_max_chars: int = Field(default=250, gt=0, alias="SECTION_HEADING_MAX_CHARS")

    generation_enabled: bool = Field(default=False, alias="GENERATION_ENABLED")

    smtp_host: str | None = Field(default=None, alias="SMTP_HOST")
    smtp_port: int = Field(default=587, alias="SMTP_PORT")
    smtp_user: str | None = Field(default=None, alias="SMTP_USER")
    smtp_password: SecretStr | None = Field(default=None, alias="SMTP_PASSWORD")
    email_from: str | None = Field(default=None, alias="EMAIL_FROM")
    app_url: str | None = Field(default=None, alias="APP_URL")

    job_poll_interval_s: float = Field(default=2.0, gt=0, alias="JOB_POLL_INTERVAL_S")
    job_max_poll_interval_s: float = Field(default=30.0, gt=0, alias="JOB_MAX_POLL_INTERVAL_S")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    error_message_language: Literal["fr", "en"] = Field(default="fr", alias="ERROR_MESSAGE_LANGUAGE")

    @model_validator(mode="after")
    def _check_section_bounds(self) -> "Settings":
        if self.section_min_chars >= self.section_max_chars:
            raise ValueError("SECTION_MIN_CHARS must be < SECTION_MAX_CHARS")
        return self

    def postgres_config(self) -> PostgresConfig:
        return PostgresConfig(
            dsn=self.pg_dsn,
            host=self.postgres_host,
            port=self.postgres_port,
            db=self.postgres_db,
            user=self.postgres_user,
            password=self.postgres_password,
        )

    def llm_retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.llm_retry_max_attempts,
            initial_delay_s=self.llm_retry_initial_delay_s,
            max_delay_s=self.llm_retry_max_delay_s,
            multiplier=self.llm_retry_multiplier,
            retryable_signatures=LLM_RETRY.retryable_signatures,
        )


def load_settings() -> Settings:
    return Settings()
