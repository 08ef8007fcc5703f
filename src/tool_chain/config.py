# config.py
# Runtime settings. Values come from the environment (optionally a .env
# file). Nothing here is global: the entry point builds one Settings and
# passes it down.

import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"
DEFAULT_MODEL = "anthropic/claude-3.5-haiku"


class Settings(BaseModel):
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    api_key: str | None = None

    summary_words: int = Field(default=200, gt=0, description="Default summary length in words.")
    digest_chars: int = Field(default=200, gt=0, description="Per-step truncation in trace digests.")

    search_max_results: int = Field(default=4, gt=0)
    search_attempts: int = Field(default=3, ge=1)
    search_backoff_base: float = Field(default=0.5, ge=0)
    search_backoff_max: float = Field(default=8.0, ge=0)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()
        values: dict = {
            "model": os.getenv("TOOL_CHAIN_MODEL", DEFAULT_MODEL),
            "base_url": os.getenv("TOOL_CHAIN_BASE_URL", DEFAULT_BASE_URL),
            "api_key": os.getenv("OPENROUTER_API_KEY"),
        }
        if os.getenv("TOOL_CHAIN_SUMMARY_WORDS"):
            values["summary_words"] = os.getenv("TOOL_CHAIN_SUMMARY_WORDS")
        if os.getenv("TOOL_CHAIN_SEARCH_ATTEMPTS"):
            values["search_attempts"] = os.getenv("TOOL_CHAIN_SEARCH_ATTEMPTS")
        return cls.model_validate(values)
