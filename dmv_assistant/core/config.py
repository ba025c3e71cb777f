from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_PACKAGED_CATALOG_DIR = Path(__file__).resolve().parent.parent / "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Supabase
    supabase_url: str = Field(..., alias="SUPABASE_URL")
    supabase_service_role_key: str = Field(..., alias="SUPABASE_SERVICE_ROLE_KEY")
    sessions_table: str = Field("chat_sessions", alias="SESSIONS_TABLE")

    # LLM provider used for document classification (must accept image parts)
    llm_provider: str = Field("openai", alias="LLM_PROVIDER")  # openai
    llm_model: str = Field("gpt-4o-mini", alias="LLM_MODEL")
    llm_timeout_seconds: float = Field(30.0, alias="LLM_TIMEOUT_SECONDS")
    classifier_max_tokens: int = Field(256, alias="CLASSIFIER_MAX_TOKENS", gt=0)
    classifier_max_attempts: int = Field(2, alias="CLASSIFIER_MAX_ATTEMPTS", ge=1)
    classifier_retry_wait_seconds: float = Field(1.0, alias="CLASSIFIER_RETRY_WAIT_SECONDS", ge=0)

    # OpenAI
    openai_api_key: str | None = Field(None, alias="OPENAI_API_KEY")

    # Verified-document ledger
    ledger_max_attempts: int = Field(3, alias="LEDGER_MAX_ATTEMPTS", ge=1)

    # Uploads
    max_upload_mb: int = Field(10, alias="MAX_UPLOAD_MB", gt=0)

    # Requirement catalog (required_docs.json + dmv_jobs.json)
    catalog_dir: Path = Field(_PACKAGED_CATALOG_DIR, alias="CATALOG_DIR")

    # Runtime
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    api_host: str = Field("127.0.0.1", alias="API_HOST")
    api_port: int = Field(8000, alias="API_PORT")

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024


settings = Settings()
