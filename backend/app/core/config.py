"""
Application configuration loaded from environment variables.

Values are read once per process. A `.env` file at the repository root is
loaded first if present, so local development does not need exported
variables.

Required:
- TOGETHER_API_KEY: completion service API key
- CLOUDFLARE_API_KEY: Cloudflare API key (Workers AI, Vectorize, D1)
- ACCOUNT_ID: Cloudflare account identifier
- D1_DATABASE_ID: D1 database identifier
- EMAIL: Cloudflare account email used for X-Auth-Email

Optional:
- VECTORIZE_INDEX: Vectorize index name (default: perfume_index)
- LLM_API_BASE, LLM_INSIGHT_MODEL, LLM_TIMEOUT_SECONDS
- CLOUDFLARE_API_BASE, CLOUDFLARE_TIMEOUT_SECONDS
- EMBEDDING_MODEL, VECTOR_TOP_K, INSIGHT_QUERY_LANGUAGE
"""
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from app.core.logging import get_logger

logger = get_logger(__name__)

env_path = Path(__file__).parent.parent.parent.parent / ".env"

MAX_TOP_K = 5

REQUIRED_ENV_VARS = {
    "together_api_key": "TOGETHER_API_KEY",
    "cloudflare_api_key": "CLOUDFLARE_API_KEY",
    "account_id": "ACCOUNT_ID",
    "d1_database_id": "D1_DATABASE_ID",
    "email": "EMAIL",
}


class Settings(BaseModel):
    """Typed view over the process environment."""

    together_api_key: Optional[str] = None
    cloudflare_api_key: Optional[str] = None
    account_id: Optional[str] = None
    d1_database_id: Optional[str] = None
    email: Optional[str] = None
    vectorize_index: str = "perfume_index"

    llm_api_base: str = "https://api.together.xyz/v1"
    llm_insight_model: str = "deepseek-ai/DeepSeek-V3"
    llm_timeout_seconds: float = 60.0

    cloudflare_api_base: str = "https://api.cloudflare.com/client/v4"
    cloudflare_timeout_seconds: float = 30.0

    embedding_model: str = "@cf/baai/bge-base-en-v1.5"
    vector_top_k: int = Field(MAX_TOP_K, ge=1, le=MAX_TOP_K)
    insight_query_language: str = "Indonesian"

    def missing_required(self) -> List[str]:
        """Names of required environment variables that are unset or empty."""
        return [
            env_name
            for field_name, env_name in REQUIRED_ENV_VARS.items()
            if not getattr(self, field_name)
        ]

    @property
    def cloudflare_configured(self) -> bool:
        return bool(self.cloudflare_api_key and self.account_id and self.email)

    @classmethod
    def from_env(cls) -> "Settings":
        values = {
            "together_api_key": os.getenv("TOGETHER_API_KEY"),
            "cloudflare_api_key": os.getenv("CLOUDFLARE_API_KEY"),
            "account_id": os.getenv("ACCOUNT_ID"),
            "d1_database_id": os.getenv("D1_DATABASE_ID"),
            "email": os.getenv("EMAIL"),
            "vectorize_index": os.getenv("VECTORIZE_INDEX"),
            "llm_api_base": os.getenv("LLM_API_BASE"),
            "llm_insight_model": os.getenv("LLM_INSIGHT_MODEL"),
            "llm_timeout_seconds": os.getenv("LLM_TIMEOUT_SECONDS"),
            "cloudflare_api_base": os.getenv("CLOUDFLARE_API_BASE"),
            "cloudflare_timeout_seconds": os.getenv("CLOUDFLARE_TIMEOUT_SECONDS"),
            "embedding_model": os.getenv("EMBEDDING_MODEL"),
            "vector_top_k": os.getenv("VECTOR_TOP_K"),
            "insight_query_language": os.getenv("INSIGHT_QUERY_LANGUAGE"),
        }
        # Unset (or blank) variables fall back to field defaults
        return cls(**{k: v for k, v in values.items() if v not in (None, "")})


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Global settings accessor. Loads `.env` on first use."""
    global _settings
    if _settings is None:
        if env_path.exists():
            load_dotenv(env_path)
            logger.info("env_loaded", env_path=str(env_path))
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings so the next access re-reads the environment."""
    global _settings
    _settings = None
