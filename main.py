#!/usr/bin/env python3
"""
AdScribe v1.0.0 — command-line entry point.
Downloads Facebook Ad Library videos, extracts audio and produces
speaker-labelled transcripts via ElevenLabs Scribe.

The daily quota is held in memory, so it applies per process: each one-shot
command starts a fresh window. Use `batch` to run many ads through one
long-lived service, where the quota and the periodic workspace reaper span
the whole run. Pipeline commands sweep stale workspaces before they start.
"""

import argparse
import json
import os
import sys
import logging
import traceback
from datetime import datetime
from pathlib import Path

# ── Determine project root ────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from adscribe.core.constants import APP_NAME, APP_VERSION, LOG_DIR, ENV_LOG_LEVEL, ENV_API_KEY
from adscribe.core.config import AppConfig
from adscribe.core.error_codes import JobError
from adscribe.core.url_parse import parse_input_lines
from adscribe.core.output_writer import transcript_preview
from adscribe.core.diagnostics import missing_tools, get_diagnostics
from adscribe.core.transcribe_elevenlabs import verify_api_key
from adscribe.core.service import TranscriberService

logger = logging.getLogger("adscribe")

# Commands that run pipeline stages and need yt-dlp and ffmpeg
PIPELINE_COMMANDS = ("process", "download", "extract-audio", "transcribe", "batch")


def setup_logging():
    """Log to stderr and to <app data>/logs/app.log."""
    handlers = [logging.StreamHandler(sys.stderr)]
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(LOG_DIR / "app.log", encoding="utf-8"))
    except OSError as e:
        print(f"Log file unavailable: {e}", file=sys.stderr)

    logging.basicConfig(
        level=os.environ.get(ENV_LOG_LEVEL, "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
    )


def check_prerequisites():
    """Check that yt-dlp and ffmpeg are available, exit if not."""
    missing = missing_tools()
    if missing:
        logger.error("Missing tools: %s. PATH = %s",
                     ", ".join(missing), os.environ.get("PATH", ""))
        sys.exit(1)


def _result_payload(result) -> dict:
    payload = {
        "success": result.success,
        "job_id": result.job_id,
        "stage": result.stage,
        "artifacts": result.artifacts,
    }
    if result.error is not None:
        payload["error"] = {"code": result.error.code, "message": result.error.message}
    if result.transcript is not None:
        payload["transcript_preview"] = transcript_preview(result.transcript)
    return payload


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="adscribe", description=f"{APP_NAME} {APP_VERSION}")
    parser.add_argument("--config", type=Path, help="Path to config.json")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process", help="Download, extract audio and transcribe")
    p.add_argument("url")
    p.add_argument("--language", help="Language code for transcription")

    p = sub.add_parser("download", help="Download the ad video only")
    p.add_argument("url")

    p = sub.add_parser("extract-audio", help="Extract audio for an existing job")
    p.add_argument("job_id")

    p = sub.add_parser("transcribe", help="Transcribe an existing job's audio")
    p.add_argument("job_id")
    p.add_argument("--language", help="Language code for transcription")

    p = sub.add_parser("clone-voice", help="Clone the voice in a job's audio")
    p.add_argument("job_id")

    p = sub.add_parser("tts", help="Synthesize text with a cloned voice")
    p.add_argument("voice_id")
    p.add_argument("text")

    p = sub.add_parser("batch", help="Process every Ad Library URL in a file (or stdin)")
    p.add_argument("file", nargs="?", default="-", help="Text file with one URL per line")
    p.add_argument("--language", help="Language code for transcription")

    sub.add_parser("sweep", help="Remove stale workspaces once")
    sub.add_parser("verify-key", help="Check the ElevenLabs API key")
    sub.add_parser("status", help="Show quota, features and tool versions")
    return parser


def read_batch(source: str) -> list[str]:
    """Ad Library URLs from a text file, or from stdin when source is '-'."""
    if source == "-":
        return parse_input_lines(sys.stdin.read())
    return parse_input_lines(Path(source).read_text(encoding="utf-8"))


def run_batch(service: TranscriberService, urls: list[str],
              language: str | None = None, emit=None) -> dict:
    """
    Run process() for each URL inside one started service, so the quota and
    the reaper thread cover the whole batch. Per-URL results go to emit().
    """
    failed = 0
    service.start()
    try:
        for url in urls:
            try:
                payload = _result_payload(service.process(url, language))
            except JobError as e:
                payload = {"success": False, "error": {"code": e.code, "message": e.message}}
            payload["url"] = url
            if not payload["success"]:
                failed += 1
            if emit:
                emit(payload)
    finally:
        service.stop()

    logger.info("Batch finished: %d processed, %d failed", len(urls), failed)
    return {"success": failed == 0, "processed": len(urls), "failed": failed}


def _emit_line(payload: dict):
    print(json.dumps(payload, default=str), flush=True)


def run_command(args, service: TranscriberService) -> dict:
    if args.command in PIPELINE_COMMANDS:
        service.reaper.sweep()

    if args.command == "batch":
        urls = read_batch(args.file)
        if not urls:
            return {"success": False, "message": "No Ad Library URLs found in input"}
        return run_batch(service, urls, args.language, emit=_emit_line)
    if args.command == "process":
        return _result_payload(service.process(args.url, args.language))
    if args.command == "download":
        return _result_payload(service.download(args.url))
    if args.command == "extract-audio":
        return _result_payload(service.extract_audio(args.job_id))
    if args.command == "transcribe":
        return _result_payload(service.transcribe(args.job_id, args.language))
    if args.command == "clone-voice":
        return {"success": True, "voice_id": service.clone_voice(args.job_id)}
    if args.command == "tts":
        return {"success": True, "path": str(service.text_to_speech(args.voice_id, args.text))}
    if args.command == "sweep":
        return {"removed": service.reaper.sweep()}
    if args.command == "verify-key":
        if not service.config.api_key:
            return {"success": False, "message": f"{ENV_API_KEY} is not set"}
        ok, message = verify_api_key(service.config.api_key)
        return {"success": ok, "message": message}
    status = service.status()
    status["tools"] = get_diagnostics()
    status["config"] = service.config.as_dict()
    return status


def main(argv=None):
    args = build_parser().parse_args(argv)
    setup_logging()

    logger.info("=" * 60)
    logger.info("%s v%s starting at %s", APP_NAME, APP_VERSION, datetime.now().isoformat())
    logger.info("Python: %s", sys.executable)
    logger.info("=" * 60)

    try:
        if args.command in PIPELINE_COMMANDS:
            check_prerequisites()
        service = TranscriberService(AppConfig(args.config))
        service.workspaces.ensure_root()
        payload = run_command(args, service)
    except JobError as e:
        logger.error("%s", e)
        print(json.dumps({"success": False, "error": {"code": e.code, "message": e.message}},
                         indent=2))
        sys.exit(2)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.critical("Fatal error: %s\n%s", error_msg, traceback.format_exc())
        sys.exit(1)

    print(json.dumps(payload, indent=2, default=str))
    if payload.get("success") is False:
        sys.exit(2)


if __name__ == "__main__":
    main()
