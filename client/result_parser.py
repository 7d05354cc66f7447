# client/result_parser.py
import json
import logging
import re
from typing import Any
from model.meeting import MeetingResult, ProcessingMode

logger = logging.getLogger(__name__)

RAW_TEXT_SUMMARY = "Raw text received (could not parse JSON)"
PARSE_ERROR_SUMMARY = "Error parsing structured notes."

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_list(*candidates: Any) -> list[str]:
    """First candidate that is a list wins; items are stringified."""
    for value in candidates:
        if isinstance(value, list):
            return [_as_text(v) for v in value]
    return []


def parse_meeting_result(raw: str, mode: ProcessingMode = ProcessingMode.ALL) -> MeetingResult:
    """
    Turn raw model output into a MeetingResult. Never raises.
    - Code fences are stripped, then the text between the first "{" and the last "}"
      is parsed as JSON.
    - No braces: the whole text becomes the transcription.
    - Broken JSON (including braces in the wrong order or nesting too deep to
      decode): same, with an explanatory summary.
    - "decisions" (older responses) feeds "conclusions" when the latter is missing.
    """
    text = _as_text(raw)
    cleaned = _FENCE_RE.sub("", text).strip()
    first = cleaned.find("{")
    last = cleaned.rfind("}")

    if first == -1 or last == -1:
        logger.info("parse.unstructured chars=%d mode=%s", len(text), mode.value)
        return MeetingResult(transcription=text, summary=RAW_TEXT_SUMMARY)

    try:
        data = json.loads(cleaned[first : last + 1])
        if not isinstance(data, dict):
            raise ValueError(f"expected an object, got {type(data).__name__}")
    except (ValueError, RecursionError) as e:
        logger.warning("parse.failed mode=%s err=%s", mode.value, e)
        return MeetingResult(transcription=text, summary=PARSE_ERROR_SUMMARY)

    result = MeetingResult(
        transcription=_as_text(data.get("transcription")),
        summary=_as_text(data.get("summary")),
        conclusions=_as_list(data.get("conclusions"), data.get("decisions")),
        actionItems=_as_list(data.get("actionItems"), data.get("action_items")),
    )
    logger.info(
        "parse.ok mode=%s transcript_chars=%d conclusions=%d actions=%d",
        mode.value,
        len(result.transcription),
        len(result.conclusions),
        len(result.actionItems),
    )
    return result
