"""
Video download via yt-dlp.
Strategies are tried in order by the pipeline; this module runs one attempt.
"""

import logging
import subprocess
from pathlib import Path

from adscribe.core.security_utils import run_subprocess_capture
from adscribe.core.error_codes import JobError
from adscribe.core.models import FetchStrategy
from adscribe.core.constants import (
    ErrorCode, YTDLP_CMD, YTDLP_COMMON_ARGS,
    PRIMARY_FORMAT, FALLBACK_FORMAT, FALLBACK_USER_AGENT,
    FETCH_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)

DEFAULT_STRATEGIES = (
    FetchStrategy(name="primary", format_selector=PRIMARY_FORMAT),
    FetchStrategy(name="fallback", format_selector=FALLBACK_FORMAT,
                  user_agent=FALLBACK_USER_AGENT),
)


def build_ytdlp_args(source_url: str, output_path: Path,
                     strategy: FetchStrategy) -> list[str]:
    args = [
        YTDLP_CMD,
        "-o", str(output_path),
        "--format", strategy.format_selector,
    ]
    if strategy.user_agent:
        args.extend(["--user-agent", strategy.user_agent])
    args.extend(YTDLP_COMMON_ARGS)
    args.extend(strategy.extra_args)
    args.append(source_url)
    return args


def download_video(source_url: str, output_path: Path,
                   strategy: FetchStrategy,
                   timeout: float = FETCH_TIMEOUT_SEC) -> Path:
    """
    Download a single media file to output_path using one strategy.
    Raises JobError(DOWNLOAD_TIMEOUT) if the attempt exceeds timeout
    (the yt-dlp process is killed), JobError(DOWNLOAD_FAILED) otherwise.
    """
    args = build_ytdlp_args(source_url, output_path, strategy)

    try:
        result = run_subprocess_capture(args, timeout=timeout)
    except subprocess.TimeoutExpired:
        raise JobError(ErrorCode.DOWNLOAD_TIMEOUT,
                       f"yt-dlp timed out after {timeout:.0f}s ({strategy.name})")
    except OSError as e:
        raise JobError(ErrorCode.DOWNLOAD_FAILED, f"Video download failed: {e}")

    if result.returncode != 0:
        stderr = result.stderr or ""
        raise JobError(ErrorCode.DOWNLOAD_FAILED,
                       f"yt-dlp download failed (rc={result.returncode}, "
                       f"{strategy.name}): {stderr[:300]}")

    if not output_path.is_file() or output_path.stat().st_size == 0:
        raise JobError(ErrorCode.DOWNLOAD_FAILED,
                       f"No video file found after download ({strategy.name})")

    logger.info("Downloaded video: %s (%s)", output_path, strategy.name)
    return output_path
