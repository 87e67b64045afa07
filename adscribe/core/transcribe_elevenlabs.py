"""
ElevenLabs Scribe Speech-to-Text integration.
Pre-recorded mode with speaker diarization and word-level timestamps.
No automatic retries: a failed request is surfaced to the caller, who can
re-run the stage because the audio artifact persists.
"""

import json
import logging
import requests
from pathlib import Path

from adscribe.core.error_codes import JobError
from adscribe.core.models import DiarizedToken
from adscribe.core.security_utils import redact
from adscribe.core.constants import (
    ErrorCode, TokenKind, ELEVENLABS_API_BASE, SCRIBE_MODEL,
    DEFAULT_LANGUAGE, DEFAULT_NUM_SPEAKERS, TRANSCRIBE_MIN_TIMEOUT_SEC,
)

logger = logging.getLogger(__name__)

SPEECH_TO_TEXT_URL = f"{ELEVENLABS_API_BASE}/speech-to-text"


def verify_api_key(api_key: str) -> tuple[bool, str]:
    """
    Verify an ElevenLabs API key with a lightweight request.
    Returns (success: bool, message: str).
    """
    try:
        resp = requests.get(
            f"{ELEVENLABS_API_BASE}/user",
            headers={"xi-api-key": api_key},
            timeout=10,
        )
        if resp.status_code == 200:
            return True, "Key verified"
        elif resp.status_code in (401, 403):
            return False, "Key invalid or rejected"
        else:
            return False, f"Unexpected response: {resp.status_code}"
    except requests.exceptions.ConnectionError:
        return False, "Network error — could not reach ElevenLabs"
    except requests.exceptions.Timeout:
        return False, "Network error — request timed out"
    except requests.exceptions.RequestException as e:
        return False, f"Network error: {e}"


def _timeout_for(audio_path: Path, min_timeout: int) -> int:
    # Adaptive timeout: ~1 min per 10MB, with a floor
    file_size = audio_path.stat().st_size
    return max(min_timeout, int(file_size / (10 * 1024 * 1024) * 60) + 60)


def transcribe_audio(audio_path: Path, api_key: str | None,
                     language: str = DEFAULT_LANGUAGE,
                     num_speakers: int | None = DEFAULT_NUM_SPEAKERS,
                     tag_audio_events: bool = True,
                     min_timeout: int = TRANSCRIBE_MIN_TIMEOUT_SEC) -> dict:
    """
    Transcribe an audio file with ElevenLabs Scribe.
    Returns the decoded response dict.
    """
    if not api_key:
        raise JobError(ErrorCode.API_KEY_MISSING,
                       "ElevenLabs API key not configured", retryable=False)

    data = {
        "model_id": SCRIBE_MODEL,
        "language_code": language,
        "diarize": "true",
        "timestamps_granularity": "word",
        "tag_audio_events": "true" if tag_audio_events else "false",
    }
    if num_speakers:
        data["num_speakers"] = str(num_speakers)

    timeout_sec = _timeout_for(audio_path, min_timeout)

    try:
        with open(audio_path, 'rb') as f:
            resp = requests.post(
                SPEECH_TO_TEXT_URL,
                headers={"xi-api-key": api_key},
                data=data,
                files={"file": (audio_path.name, f, "audio/mpeg")},
                timeout=timeout_sec,
            )
    except requests.exceptions.Timeout:
        raise JobError(ErrorCode.TRANSCRIBE_TIMEOUT,
                       "ElevenLabs request timed out")
    except requests.exceptions.ConnectionError:
        raise JobError(ErrorCode.NETWORK_TRANSIENT,
                       "Network error connecting to ElevenLabs")
    except requests.exceptions.RequestException as e:
        raise JobError(ErrorCode.TRANSCRIBE_FAILED,
                       f"ElevenLabs request failed: {redact(str(e), api_key)}")

    if not 200 <= resp.status_code < 300:
        # Sanitize error message (never log API key)
        error_body = resp.text[:300] if resp.text else "No response body"
        raise JobError(ErrorCode.TRANSCRIBE_FAILED,
                       f"ElevenLabs returned {resp.status_code}: {redact(error_body, api_key)}",
                       retryable=resp.status_code == 429 or resp.status_code >= 500)

    try:
        return resp.json()
    except (json.JSONDecodeError, ValueError):
        raise JobError(ErrorCode.TRANSCRIBE_MALFORMED,
                       "Failed to parse ElevenLabs response JSON", retryable=False)


def extract_tokens(response: dict) -> list[DiarizedToken]:
    """
    Convert a Scribe response into diarized tokens, in provider order.
    Spacing tokens carry no text worth keeping and are dropped.
    """
    if not isinstance(response, dict):
        raise JobError(ErrorCode.TRANSCRIBE_MALFORMED,
                       "ElevenLabs response is not an object", retryable=False)

    words = response.get('words') or []
    if not isinstance(words, list):
        raise JobError(ErrorCode.TRANSCRIBE_MALFORMED,
                       "ElevenLabs 'words' is not a list", retryable=False)

    tokens = []
    for word in words:
        if not isinstance(word, dict):
            raise JobError(ErrorCode.TRANSCRIBE_MALFORMED,
                           f"Unexpected word entry: {word!r:.100}", retryable=False)
        kind = word.get('type') or TokenKind.WORD
        if kind == TokenKind.SPACING:
            continue
        tokens.append(DiarizedToken(
            text=str(word.get('text') or ''),
            kind=kind,
            speaker_id=word.get('speaker_id') or None,
            start=word.get('start'),
            end=word.get('end'),
        ))
    return tokens


def transcribe_tokens(audio_path: Path, language: str, api_key: str | None,
                      **kwargs) -> list[DiarizedToken]:
    """Transcribe and parse in one call; the pipeline's default transcriber."""
    response = transcribe_audio(audio_path, api_key, language=language, **kwargs)
    tokens = extract_tokens(response)
    logger.info("ElevenLabs returned %d tokens for %s", len(tokens), audio_path.name)
    return tokens
