"""
Output writer: persists the transcript artifact and derives client-facing names.
"""

import os
import logging
from pathlib import Path

from adscribe.core.constants import (
    ARTIFACT_FILENAMES, ArtifactKind, DOWNLOAD_NAME_PREFIX,
    TRANSCRIPT_PREVIEW_CHARS,
)

logger = logging.getLogger(__name__)


def write_transcript(text: str, output_path: Path) -> Path:
    """
    Write the transcript, replacing any previous one in a single rename
    so concurrent readers never see a half-written file.
    """
    tmp_path = output_path.with_name(output_path.name + ".tmp")
    tmp_path.write_text(text, encoding='utf-8')
    os.replace(tmp_path, output_path)
    logger.info("Wrote transcript: %s", output_path)
    return output_path


def transcript_preview(text: str, limit: int = TRANSCRIPT_PREVIEW_CHARS) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + '...'


def download_name(job_id: str, kind: str) -> str:
    """File name offered to clients, e.g. facebook-ad-<id>.mp4."""
    suffix = Path(ARTIFACT_FILENAMES[kind]).suffix
    if kind == ArtifactKind.TRANSCRIPT:
        return f"{DOWNLOAD_NAME_PREFIX}-{job_id}-transcript{suffix}"
    return f"{DOWNLOAD_NAME_PREFIX}-{job_id}{suffix}"
