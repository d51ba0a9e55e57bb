"""
Centralised console settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Transport ────────────────────────────────────────
    # 1: query the server directly over the binary RPC client
    # 2: query through the web server's JSON API (single OAuth point)
    arch_mode: int = 2
    service_addr: str = "http://localhost:8080"
    web_base_url: str = "http://localhost:8088"
    request_timeout_s: float = 30.0

    # ── Query guardrails ─────────────────────────────────
    max_timeline_buckets: int = 1000
    list_tables_limit: int = 100
    default_limit: int = 100

    # ── App ──────────────────────────────────────────────
    api_port: int = 8000
    streamlit_port: int = 8501
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
