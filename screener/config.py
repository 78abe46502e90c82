import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    llm_timeout_seconds: float = 60.0
    session_store_path: Path = Path("interview_data") / "session_store.json"
    session_timeout_hours: float = 24.0
    timer_interval_seconds: float = 1.0
    max_upload_bytes: int = 10 * 1024 * 1024
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        llm_timeout_seconds=float(os.getenv("LLM_TIMEOUT_SECONDS", "60")),
        session_store_path=Path(os.getenv("SESSION_STORE_PATH", "interview_data/session_store.json")),
        session_timeout_hours=float(os.getenv("SESSION_TIMEOUT_HOURS", "24")),
        timer_interval_seconds=float(os.getenv("TIMER_INTERVAL_SECONDS", "1.0")),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024))),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
    )
