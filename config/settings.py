# config/settings.py
import os
import sys
from typing import Optional
from dotenv import load_dotenv
from pydantic import ValidationError, Field
from pydantic_settings import BaseSettings
from util.enums import Environment


if os.getenv("APP_ENV", Environment.DEV) == Environment.DEV:
    load_dotenv()


class Settings(BaseSettings):
    # App
    APP_ENV: str = Field(default=Environment.DEV.value, validation_alias="APP_ENV")
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0", validation_alias="REDIS_URL"
    )
    # Abandoned job records expire after this many seconds
    PERSISTENCE_TTL_SECONDS: int = Field(
        default=24 * 60 * 60, validation_alias="PERSISTENCE_TTL_SECONDS"
    )

    # CORS & Limits
    ALLOWED_ORIGIN: str = Field(
        default="http://localhost:5173", validation_alias="ALLOWED_ORIGIN"
    )
    RATE_LIMIT_TIMES: int = Field(default=10, validation_alias="RATE_LIMIT_TIMES")
    RATE_LIMIT_SECONDS: int = Field(default=60, validation_alias="RATE_LIMIT_SECONDS")
    TRUST_PROXY: bool = Field(default=False, validation_alias="TRUST_PROXY")

    # Gemini Settings (server side only)
    GEMINI_API_KEY: str = Field(default="", validation_alias="GEMINI_API_KEY")
    GEMINI_API_BASE: str = Field(
        default="https://generativelanguage.googleapis.com",
        validation_alias="GEMINI_API_BASE",
    )
    GEMINI_MODEL: str = Field(
        default="gemini-3-pro-preview", validation_alias="GEMINI_MODEL"
    )
    GEMINI_PREFLIGHT: bool = Field(default=False, validation_alias="GEMINI_PREFLIGHT")
    GEMINI_PREFLIGHT_MODEL: str = "gemini-2.5-flash"
    GEMINI_MAX_OUTPUT_TOKENS: int = Field(
        default=8192, validation_alias="GEMINI_MAX_OUTPUT_TOKENS"
    )
    GEMINI_HTTP_TIMEOUT_SECONDS: float = Field(
        default=600.0, validation_alias="GEMINI_HTTP_TIMEOUT_SECONDS"
    )
    FILE_ACTIVE_MAX_CHECKS: int = 60
    FILE_ACTIVE_INTERVAL_SECONDS: float = 2.0

    # Pipeline client
    BACKEND_BASE_URL: str = Field(
        default="http://127.0.0.1:8000", validation_alias="BACKEND_BASE_URL"
    )
    UPLOAD_TRANSPORT: str = Field(default="proxy", validation_alias="UPLOAD_TRANSPORT")
    # None means "transport default"; 0 means a single segment (direct transport only)
    CHUNK_SIZE_BYTES: Optional[int] = Field(
        default=None, validation_alias="CHUNK_SIZE_BYTES"
    )
    CHUNK_MAX_ATTEMPTS: int = Field(default=3, validation_alias="CHUNK_MAX_ATTEMPTS")
    CHUNK_RETRY_DELAY_SECONDS: float = Field(
        default=2.0, validation_alias="CHUNK_RETRY_DELAY_SECONDS"
    )
    POLL_INTERVAL_SECONDS: float = Field(
        default=3.0, validation_alias="POLL_INTERVAL_SECONDS"
    )
    POLL_MAX_ATTEMPTS: int = Field(default=200, validation_alias="POLL_MAX_ATTEMPTS")
    CLIENT_HTTP_TIMEOUT_SECONDS: float = Field(
        default=120.0, validation_alias="CLIENT_HTTP_TIMEOUT_SECONDS"
    )

    # Logging knobs
    LOGGER_NAME: str = "meeting-notes"
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=False, validation_alias="LOG_TO_FILE")
    LOG_DIR: str = Field(default="logs", validation_alias="LOG_DIR")
    LOG_FILE_NAME: str = Field(default="app.log", validation_alias="LOG_FILE_NAME")
    LOG_MAX_BYTES: int = Field(
        default=50 * 1024 * 1024, validation_alias="LOG_MAX_BYTES"
    )
    LOG_BACKUP_COUNT: int = Field(default=5, validation_alias="LOG_BACKUP_COUNT")

    # Prompts
    SYSTEM_PROMPT: str = (
        "You are an expert professional meeting secretary.\n"
        "Listen to the attached audio recording of a meeting.\n"
        "\n"
        "SILENCE DETECTION:\n"
        "- Before processing, verify that there is intelligible speech in the audio.\n"
        "- If the audio is silent or just noise, output the FALLBACK JSON.\n"
        "\n"
        "LANGUAGE DETECTION:\n"
        "1. Detect the dominant language spoken in the audio.\n"
        '2. Write the "summary", "conclusions" and "actionItems" in that same language.\n'
        "\n"
        "ACTION ITEMS:\n"
        "- Only list EXPLICIT tasks that someone agreed to do.\n"
        "\n"
        "FALLBACK JSON (only if silence):\n"
        '{"transcription":"[No intelligible speech detected]",'
        '"summary":"No conversation was detected in the audio recording.",'
        '"conclusions":[],"actionItems":[]}\n'
    )


try:
    settings = Settings()
except ValidationError as e:
    print("❌ Missing/invalid environment variables:", file=sys.stderr)
    for err in e.errors():
        loc = ".".join(str(x) for x in err.get("loc", []))
        msg = err.get("msg", "")
        print(f" - {loc}: {msg}", file=sys.stderr)
    sys.exit(1)
except Exception as e:
    print(f"❌ Settings initialization failed: {e}", file=sys.stderr)
    sys.exit(1)
