# model/meeting.py
from enum import Enum
from pydantic import BaseModel, Field


class ProcessingMode(str, Enum):
    ALL = "ALL"
    NOTES_ONLY = "NOTES_ONLY"
    TRANSCRIPT_ONLY = "TRANSCRIPT_ONLY"


class GeminiModel(str, Enum):
    gemini_3_pro_preview = "gemini-3-pro-preview"
    gemini_2_0_flash = "gemini-2.0-flash"
    gemini_2_0_flash_lite = "gemini-2.0-flash-lite-preview-02-05"
    gemini_1_5_pro = "gemini-1.5-pro"
    gemini_1_5_flash = "gemini-1.5-flash"


class MeetingResult(BaseModel):
    """Structured notes for one recording. Never partially null."""

    transcription: str = ""
    summary: str = ""
    # Broader than "decisions": key insights and conclusions
    conclusions: list[str] = Field(default_factory=list)
    actionItems: list[str] = Field(default_factory=list)
