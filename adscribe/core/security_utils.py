"""
Security utilities for AdScribe.
- Job id validation (ids double as directory names)
- Safe subprocess execution (argument arrays only)
- Secret redaction for log output
"""

import re
import subprocess
import logging

from adscribe.core.constants import SAFE_JOB_ID_PATTERN

logger = logging.getLogger(__name__)


# ── Path safety ───────────────────────────────────────────────────────

def is_safe_job_id(job_id: str) -> bool:
    """True if job_id can be used as a single directory name under the root."""
    if not isinstance(job_id, str):
        return False
    return re.match(SAFE_JOB_ID_PATTERN, job_id) is not None


# ── Subprocess safety ─────────────────────────────────────────────────

def run_subprocess(args: list[str], **kwargs) -> subprocess.CompletedProcess:
    """
    Execute a subprocess using argument arrays only.
    shell=True is explicitly forbidden.
    """
    if not isinstance(args, (list, tuple)):
        raise TypeError("Subprocess args must be a list/tuple, not a string")

    # Force shell=False: remove any caller-supplied value, then set it once
    kwargs.pop('shell', None)

    logger.debug("Running subprocess: %s", ' '.join(str(a) for a in args))
    return subprocess.run(args, shell=False, **kwargs)


def run_subprocess_capture(args: list[str], timeout: int = 300, **kwargs) -> subprocess.CompletedProcess:
    """
    Run subprocess and capture stdout/stderr.
    On timeout the child is killed before TimeoutExpired propagates.
    """
    return run_subprocess(
        args,
        capture_output=True,
        text=True,
        timeout=timeout,
        **kwargs,
    )


# ── Log redaction ─────────────────────────────────────────────────────

def redact(text: str, secret: str | None) -> str:
    """Strip a secret from text destined for logs or error messages."""
    if not text or not secret:
        return text
    return text.replace(secret, "***")
