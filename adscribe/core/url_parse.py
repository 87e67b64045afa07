"""
Facebook Ad Library URL parsing and validation.
"""

import re
from urllib.parse import urlparse, parse_qs

from adscribe.core.constants import AD_LIBRARY_URL_PATTERN
from adscribe.core.error_codes import JobError, ErrorCode


def is_ad_library_url(url: str) -> bool:
    """Quick check if a string looks like an Ad Library ad URL."""
    if not isinstance(url, str):
        return False
    return re.match(AD_LIBRARY_URL_PATTERN, url.strip()) is not None


def extract_ad_id(url: str) -> str | None:
    """
    Extract the numeric ad id from an Ad Library URL.
    Returns None if the URL is not a valid Ad Library URL.
    """
    if not is_ad_library_url(url):
        return None
    qs = parse_qs(urlparse(url.strip()).query)
    ad_id = qs.get('id', [None])[0]
    if ad_id and ad_id.isdigit():
        return ad_id
    return None


def validate_ad_library_url(url: str) -> str:
    """
    Validate an Ad Library URL and return it stripped.
    Raises JobError if invalid.
    """
    if not url or not is_ad_library_url(url):
        raise JobError(
            ErrorCode.INVALID_URL,
            "Invalid Facebook Ad Library URL. "
            "Format: https://www.facebook.com/ads/library/?id=...",
            retryable=False,
        )
    return url.strip()


def parse_input_lines(text: str) -> list[str]:
    """
    Parse a batch of pasted text or file contents into Ad Library URLs.
    - Trims whitespace
    - Ignores empty lines and '#' comments
    - Skips anything that is not an Ad Library URL
    """
    urls = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith('#'):
            continue
        if is_ad_library_url(line):
            urls.append(line)
    return urls
