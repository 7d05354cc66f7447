# client/cli.py
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional
from client.processor import MeetingProcessor
from config.settings import settings
from model.meeting import GeminiModel, MeetingResult, ProcessingMode
from util.constants import MIB
from util.enums import Color, UploadTransportKind
from util.errors import PipelineError
from util.logger import init_logger

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="meeting-notes",
        description="Upload a meeting recording and print transcript and notes.",
    )
    p.add_argument("audio", nargs="?", help="path to the recording")
    p.add_argument(
        "--mode",
        choices=[m.value for m in ProcessingMode],
        default=ProcessingMode.ALL.value,
    )
    p.add_argument(
        "--model",
        default=settings.GEMINI_MODEL,
        help="model id, e.g. " + ", ".join(m.value for m in GeminiModel),
    )
    p.add_argument(
        "--transport",
        choices=[t.value for t in UploadTransportKind],
        default=settings.UPLOAD_TRANSPORT,
    )
    p.add_argument(
        "--chunk-mb",
        type=float,
        default=None,
        help="segment size in MiB (0 = single request); default depends on transport",
    )
    p.add_argument("--backend", default=settings.BACKEND_BASE_URL)
    p.add_argument("--resume", metavar="JOB_ID", help="poll an already submitted job")
    p.add_argument("--json", action="store_true", help="print the result as JSON")
    return p


def _chunk_bytes(chunk_mb: Optional[float]) -> Optional[int]:
    if chunk_mb is None:
        return settings.CHUNK_SIZE_BYTES
    return int(chunk_mb * MIB)


def render_markdown(result: MeetingResult, mode: ProcessingMode) -> str:
    out: List[str] = []
    if mode != ProcessingMode.TRANSCRIPT_ONLY:
        out += ["## Summary", "", result.summary or "_none_", ""]
        out += ["## Conclusions", ""]
        out += [f"- {c}" for c in result.conclusions] or ["_none_"]
        out += ["", "## Action Items", ""]
        out += [f"- [ ] {a}" for a in result.actionItems] or ["_none_"]
        out.append("")
    if mode != ProcessingMode.NOTES_ONLY:
        out += ["## Transcript", "", result.transcription or "_none_", ""]
    return "\n".join(out)


async def _run(args: argparse.Namespace) -> MeetingResult:
    mode = ProcessingMode(args.mode)
    processor = MeetingProcessor(
        args.backend,
        transport=args.transport,
        chunk_size=_chunk_bytes(args.chunk_mb),
    )

    def say(msg: str) -> None:
        print(f"{Color.BLUE}{msg}{Color.RESET}", file=sys.stderr)

    if args.resume:
        return await processor.resume(args.resume, mode, on_log=say)

    path = Path(args.audio)
    audio = path.read_bytes()
    return await processor.process(
        audio, None, mode, args.model, filename=path.name, on_log=say
    )


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if not args.audio and not args.resume:
        build_parser().error("an audio file is required unless --resume is given")

    # stdout carries the result
    init_logger("WARNING", stream=sys.stderr)
    try:
        result = asyncio.run(_run(args))
    except PipelineError as e:
        print(f"{Color.RED}{e}{Color.RESET}", file=sys.stderr)
        return 1
    except (OSError, ValueError) as e:
        # Unreadable file, bad chunk size
        print(f"{Color.RED}{e}{Color.RESET}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(result.model_dump(), ensure_ascii=False, indent=2))
    else:
        print(render_markdown(result, ProcessingMode(args.mode)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
