# util/functions.py
import json
import time
from typing import Optional
from uuid import uuid4

_EXTENSION_MIME_TYPES = (
    (".mp3", "audio/mp3"),
    (".wav", "audio/wav"),
    (".m4a", "audio/mp4"),
    (".mp4", "audio/mp4"),
    (".aac", "audio/aac"),
    (".ogg", "audio/ogg"),
    (".flac", "audio/flac"),
    (".webm", "audio/webm"),
)


def resolve_mime_type(
    filename: Optional[str], declared: Optional[str], default: str
) -> str:
    """
    - File extension wins (Gemini indexes generic types slowly).
    - Then the declared type, unless it is the generic octet-stream.
    - Then `default`.
    """
    if filename:
        name = filename.lower()
        for ext, mime in _EXTENSION_MIME_TYPES:
            if name.endswith(ext):
                return mime
    if declared and declared != "application/octet-stream":
        return declared
    return default


def new_job_id() -> str:
    """job_<epoch-ms>_<random>"""
    return f"job_{int(time.time() * 1000)}_{uuid4().hex[:8]}"


def clean_error_message(message: str) -> str:
    """
    Reduce a provider JSON error body to its `error.message`.
    Accepts either a bare JSON body or "<prefix>: {json}".
    """
    text = (message or "").strip()
    start = text.find("{")
    if start == -1:
        return text
    try:
        parsed = json.loads(text[start:])
    except ValueError:
        return text
    if isinstance(parsed, dict):
        err = parsed.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
    return text


def percent(done: int, total: int) -> float:
    if total <= 0:
        return 100.0
    return round(min(100.0, done * 100.0 / total), 1)
