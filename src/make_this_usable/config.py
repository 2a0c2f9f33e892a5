from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY")
    openai_base_url: str = Field(default="https://api.openai.com/v1", alias="OPENAI_BASE_URL")
    openai_text_model: str = Field(default="gpt-4o", alias="OPENAI_TEXT_MODEL")
    openai_file_model: str = Field(default="gpt-4o", alias="OPENAI_FILE_MODEL")
    llm_timeout_seconds: float = Field(default=60.0, alias="LLM_TIMEOUT_SECONDS")
    llm_num_retries: int = Field(default=0, alias="LLM_NUM_RETRIES")

    primary_temperature: float = Field(default=0.1, alias="PRIMARY_TEMPERATURE")
    restyle_temperature: float = Field(default=0.4, alias="RESTYLE_TEMPERATURE")

    max_input_chars: int = Field(default=100_000, alias="MAX_INPUT_CHARS")
    max_file_bytes: int = Field(default=10 * 1024 * 1024, alias="MAX_FILE_BYTES")
    max_notes_chars: int = Field(default=10_000, alias="MAX_NOTES_CHARS")
    csv_preview_rows: int = Field(default=50, alias="CSV_PREVIEW_ROWS")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
