import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    aisuite_model: str = os.getenv("AISUITE_MODEL", "openai:gpt-4o-mini")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_assistant_id: str = os.getenv("OPENAI_ASSISTANT_ID", "")
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")
    mongodb_uri: str = os.getenv("MONGODB_URI", "")
    database_name: str = os.getenv("DATABASE_NAME", "pawpath_db")

    # Instance-local LLM response cache
    llm_cache_ttl_seconds: float = float(os.getenv("LLM_CACHE_TTL_SECONDS", "3600"))
    llm_cache_max_entries: int = int(os.getenv("LLM_CACHE_MAX_ENTRIES", "512"))

    # Assistant run polling
    chat_poll_interval_seconds: float = float(os.getenv("CHAT_POLL_INTERVAL_SECONDS", "1.0"))
    chat_run_timeout_seconds: float = float(os.getenv("CHAT_RUN_TIMEOUT_SECONDS", "120"))

    allowed_origins: str = os.getenv("ALLOWED_ORIGINS", "")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")


def get_settings() -> Settings:
    return Settings()
