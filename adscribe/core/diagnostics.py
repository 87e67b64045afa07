"""
Diagnostics for the status command and health payload:
external tool availability, tool versions and feature flags.
"""

import shutil
import logging
import subprocess

from adscribe.core.security_utils import run_subprocess_capture
from adscribe.core.constants import YTDLP_CMD, FFMPEG_CMD

logger = logging.getLogger(__name__)

REQUIRED_TOOLS = (YTDLP_CMD, FFMPEG_CMD)


def tool_version(cmd: str, flag: str) -> str:
    """First line of `<cmd> <flag>`, or a short reason it could not be read."""
    try:
        result = run_subprocess_capture([cmd, flag], timeout=10)
    except FileNotFoundError:
        return "Not installed"
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.warning("Version check for %s failed: %s", cmd, e)
        return f"Error: {e}"

    if result.returncode != 0:
        return f"Error (rc={result.returncode})"
    lines = result.stdout.strip().splitlines()
    return lines[0] if lines else "Unknown"


def missing_tools() -> list[str]:
    """External binaries the pipeline needs but cannot find on PATH."""
    return [tool for tool in REQUIRED_TOOLS if not shutil.which(tool)]


def feature_flags(api_key: str | None) -> dict:
    return {
        "elevenlabs": bool(api_key),
        "transcription": "ElevenLabs Scribe API",
        "speaker_diarization": True,
    }


def get_diagnostics() -> dict:
    return {
        "ytdlp_version": tool_version(YTDLP_CMD, "--version"),
        "ffmpeg_version": tool_version(FFMPEG_CMD, "-version"),
        "missing_tools": missing_tools(),
    }
