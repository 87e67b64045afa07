"""
Shared constants for AdScribe.
Single source of truth — imported by every other module.
"""

import os
import pathlib

# ── Application identity ──────────────────────────────────────────────
APP_NAME = "AdScribe"
APP_VERSION = "1.0.0"

# ── Filesystem paths ─────────────────────────────────────────────────
HOME = pathlib.Path.home()

APP_DATA_DIR = HOME / ".adscribe"
CONFIG_PATH = APP_DATA_DIR / "config.json"
LOG_DIR = APP_DATA_DIR / "logs"


def default_workspace_root() -> pathlib.Path:
    """Railway volumes win over the local temp dir when mounted."""
    mount = os.environ.get("RAILWAY_VOLUME_MOUNT_PATH")
    if mount:
        return pathlib.Path(mount) / "temp"
    return APP_DATA_DIR / "temp"


# ── Environment variable names ───────────────────────────────────────
ENV_CONFIG_PATH = "ADSCRIBE_CONFIG"
ENV_WORKSPACE_ROOT = "ADSCRIBE_WORKSPACE_ROOT"
ENV_API_KEY = "ELEVENLABS_API_KEY"
ENV_LOG_LEVEL = "ADSCRIBE_LOG_LEVEL"

# ── Job stage values (ordered) ────────────────────────────────────────
class JobStage:
    CREATED = "CREATED"
    FETCHING = "FETCHING"
    FETCHED = "FETCHED"
    TRANSCODING = "TRANSCODING"
    TRANSCODED = "TRANSCODED"
    TRANSCRIBING = "TRANSCRIBING"
    DONE = "DONE"
    FAILED = "FAILED"


# ── Workspace artifacts ──────────────────────────────────────────────
class ArtifactKind:
    VIDEO = "video"
    AUDIO = "audio"
    TRANSCRIPT = "transcript"

ARTIFACT_FILENAMES = {
    ArtifactKind.VIDEO: "video.mp4",
    ArtifactKind.AUDIO: "audio.mp3",
    ArtifactKind.TRANSCRIPT: "transcript.txt",
}

DOWNLOAD_NAME_PREFIX = "facebook-ad"

# ── Error codes ───────────────────────────────────────────────────────
class ErrorCode:
    # Admission / lookup
    INVALID_URL = "ERR_INVALID_URL"
    QUOTA_EXCEEDED = "ERR_QUOTA_EXCEEDED"
    WORKSPACE_CREATE = "ERR_WORKSPACE_CREATE"
    ARTIFACT_NOT_FOUND = "ERR_ARTIFACT_NOT_FOUND"
    API_KEY_MISSING = "ERR_API_KEY_MISSING"
    TEXT_REQUIRED = "ERR_TEXT_REQUIRED"

    # Stage failures
    DOWNLOAD_FAILED = "ERR_DOWNLOAD_FAILED"
    DOWNLOAD_TIMEOUT = "ERR_DOWNLOAD_TIMEOUT"
    FFMPEG_TRANSCODE = "ERR_FFMPEG_TRANSCODE"
    TRANSCRIBE_FAILED = "ERR_TRANSCRIBE_FAILED"
    TRANSCRIBE_TIMEOUT = "ERR_TRANSCRIBE_TIMEOUT"
    TRANSCRIBE_MALFORMED = "ERR_TRANSCRIBE_MALFORMED"
    NETWORK_TRANSIENT = "ERR_NETWORK_TRANSIENT"

    # Voice tools
    VOICE_CLONE_FAILED = "ERR_VOICE_CLONE_FAILED"
    TTS_FAILED = "ERR_TTS_FAILED"

    UNEXPECTED = "ERR_UNEXPECTED"

# Failures a caller may reasonably re-run by hand. Nothing retries these
# automatically apart from the fetch fallback strategy.
RETRYABLE_ERRORS = {
    ErrorCode.DOWNLOAD_FAILED,
    ErrorCode.DOWNLOAD_TIMEOUT,
    ErrorCode.TRANSCRIBE_FAILED,
    ErrorCode.TRANSCRIBE_TIMEOUT,
    ErrorCode.NETWORK_TRANSIENT,
}

# ── Quota ─────────────────────────────────────────────────────────────
DAILY_LIMIT = 50

# ── Timeouts / retention (seconds) ────────────────────────────────────
FETCH_TIMEOUT_SEC = 180
TRANSCODE_TIMEOUT_SEC = 600
TRANSCRIBE_MIN_TIMEOUT_SEC = 120
WORKSPACE_TTL_SEC = 3600
REAPER_INTERVAL_SEC = 600
MAX_TRACKED_JOBS = 1000

# ── Fetch (yt-dlp) ────────────────────────────────────────────────────
YTDLP_CMD = "yt-dlp"
PRIMARY_FORMAT = "best[ext=mp4]/best"
FALLBACK_FORMAT = "best"
FALLBACK_USER_AGENT = "Mozilla/5.0"
YTDLP_COMMON_ARGS = ["--no-check-certificate", "--no-warnings"]

# ── Transcode (ffmpeg) ───────────────────────────────────────────────
FFMPEG_CMD = "ffmpeg"
AUDIO_CODEC = "libmp3lame"
AUDIO_BITRATE = "128k"
AUDIO_FORMAT = "mp3"

# ── ElevenLabs ────────────────────────────────────────────────────────
ELEVENLABS_API_BASE = "https://api.elevenlabs.io/v1"
SCRIBE_MODEL = "scribe_v1"
TTS_MODEL = "eleven_multilingual_v2"
DEFAULT_LANGUAGE = "de"
DEFAULT_NUM_SPEAKERS = 2
UNKNOWN_SPEAKER = "Unknown"

class TokenKind:
    WORD = "word"
    AUDIO_EVENT = "audio_event"
    SPACING = "spacing"

TRANSCRIPT_PREVIEW_CHARS = 500

# ── Misc ──────────────────────────────────────────────────────────────
AD_LIBRARY_URL_PATTERN = r'^https://www\.facebook\.com/ads/library/\?id=\d+'

# Job ids double as directory names
SAFE_JOB_ID_PATTERN = r'^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$'
