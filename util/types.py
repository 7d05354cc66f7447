# util/types.py
from typing import Callable, Literal, TypedDict


# Flow: Narrow types for pipeline progress events.
PipelinePhase = Literal["authorize", "upload", "submit", "poll", "parse", "done"]


class ProgressEvent(TypedDict):
    phase: PipelinePhase
    percent: float
    message: str


ProgressCallback = Callable[[ProgressEvent], None]
LogCallback = Callable[[str], None]
