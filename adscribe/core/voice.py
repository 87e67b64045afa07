"""
ElevenLabs voice tools: clone a voice from a job's audio, synthesize speech.
"""

import json
import logging
import requests
from pathlib import Path

from adscribe.core.error_codes import JobError
from adscribe.core.security_utils import redact
from adscribe.core.constants import ErrorCode, ELEVENLABS_API_BASE, TTS_MODEL

logger = logging.getLogger(__name__)

VOICE_ADD_URL = f"{ELEVENLABS_API_BASE}/voices/add"
TTS_URL_TEMPLATE = ELEVENLABS_API_BASE + "/text-to-speech/{voice_id}"

_VOICE_SETTINGS = {
    "stability": 0.5,
    "similarity_boost": 0.5,
}


def _require_key(api_key: str | None):
    if not api_key:
        raise JobError(ErrorCode.API_KEY_MISSING,
                       "ElevenLabs API key not configured", retryable=False)


def _error_detail(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except (json.JSONDecodeError, ValueError):
        return resp.text[:300] if resp.text else "No response body"
    if isinstance(body, dict) and body.get('detail'):
        return str(body['detail'])[:300]
    return str(body)[:300]


def clone_voice(audio_path: Path, name: str, api_key: str | None,
                timeout: int = 300) -> str:
    """Create an instant voice clone from one audio sample. Returns the voice id."""
    _require_key(api_key)
    try:
        with open(audio_path, 'rb') as f:
            resp = requests.post(
                VOICE_ADD_URL,
                headers={"xi-api-key": api_key},
                data={"name": name},
                files={"files": (audio_path.name, f, "audio/mpeg")},
                timeout=timeout,
            )
    except requests.exceptions.RequestException as e:
        raise JobError(ErrorCode.VOICE_CLONE_FAILED,
                       f"Voice clone request failed: {redact(str(e), api_key)}")

    if resp.status_code != 200:
        raise JobError(ErrorCode.VOICE_CLONE_FAILED,
                       f"Voice cloning failed ({resp.status_code}): "
                       f"{redact(_error_detail(resp), api_key)}")

    try:
        voice_id = resp.json()['voice_id']
    except (ValueError, KeyError, TypeError):
        raise JobError(ErrorCode.VOICE_CLONE_FAILED, "Voice clone response had no voice_id")

    logger.info("Cloned voice %s as %s", name, voice_id)
    return voice_id


def text_to_speech(voice_id: str, text: str, api_key: str | None,
                   output_path: Path, timeout: int = 120) -> Path:
    """Synthesize text with the given voice and write the MP3 to output_path."""
    _require_key(api_key)
    if not text or not text.strip():
        raise JobError(ErrorCode.TEXT_REQUIRED, "Text is required", retryable=False)

    try:
        resp = requests.post(
            TTS_URL_TEMPLATE.format(voice_id=voice_id),
            headers={"xi-api-key": api_key},
            json={
                "text": text,
                "model_id": TTS_MODEL,
                "voice_settings": _VOICE_SETTINGS,
            },
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise JobError(ErrorCode.TTS_FAILED,
                       f"Text-to-speech request failed: {redact(str(e), api_key)}")

    if resp.status_code != 200:
        raise JobError(ErrorCode.TTS_FAILED,
                       f"Text-to-speech failed ({resp.status_code}): "
                       f"{redact(_error_detail(resp), api_key)}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(resp.content)
    logger.info("Wrote speech: %s (%d bytes)", output_path, len(resp.content))
    return output_path
