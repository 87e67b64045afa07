"""
Audio extraction using ffmpeg.
Target: MP3 (libmp3lame) at a fixed bitrate.
"""

import logging
import subprocess
from pathlib import Path

from adscribe.core.security_utils import run_subprocess_capture
from adscribe.core.error_codes import JobError
from adscribe.core.constants import (
    ErrorCode, FFMPEG_CMD, AUDIO_CODEC, AUDIO_BITRATE, AUDIO_FORMAT,
    TRANSCODE_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)


def transcode_audio(input_path: Path, output_path: Path,
                    codec: str = AUDIO_CODEC, bitrate: str = AUDIO_BITRATE,
                    timeout: float = TRANSCODE_TIMEOUT_SEC) -> Path:
    """
    Extract the audio track of input_path into output_path.
    Returns output_path. Raises JobError(FFMPEG_TRANSCODE) on any failure.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    args = [
        FFMPEG_CMD,
        "-y",                           # overwrite
        "-i", str(input_path),
        "-vn",                          # drop video
        "-codec:a", codec,
        "-b:a", bitrate,
        "-f", AUDIO_FORMAT,
        str(output_path),
    ]

    try:
        result = run_subprocess_capture(args, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise JobError(ErrorCode.FFMPEG_TRANSCODE,
                       f"ffmpeg timed out after {timeout:.0f}s")
    except OSError as e:
        raise JobError(ErrorCode.FFMPEG_TRANSCODE, f"ffmpeg audio extraction failed: {e}")

    if result.returncode != 0:
        stderr = result.stderr or ""
        raise JobError(ErrorCode.FFMPEG_TRANSCODE,
                       f"ffmpeg failed (rc={result.returncode}): {stderr[-300:]}")

    if not output_path.is_file():
        raise JobError(ErrorCode.FFMPEG_TRANSCODE, "Audio file not created")

    logger.info("Extracted audio: %s", output_path)
    return output_path
