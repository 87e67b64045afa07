"""
Application configuration manager.
Stores settings in a JSON file; environment variables override the file.
The ElevenLabs API key is only ever read from the environment.
"""

import json
import logging
import os
from pathlib import Path

from adscribe.core.constants import (
    CONFIG_PATH, ENV_CONFIG_PATH, ENV_WORKSPACE_ROOT, ENV_API_KEY,
    default_workspace_root,
    FETCH_TIMEOUT_SEC, TRANSCODE_TIMEOUT_SEC, TRANSCRIBE_MIN_TIMEOUT_SEC,
    WORKSPACE_TTL_SEC, REAPER_INTERVAL_SEC,
    DEFAULT_LANGUAGE, DEFAULT_NUM_SPEAKERS,
)

logger = logging.getLogger(__name__)

# Validation bounds: key -> (type, min, max, default)
_NUMERIC_BOUNDS = {
    'fetch_timeout_sec': (int, 10, 1800, FETCH_TIMEOUT_SEC),
    'transcode_timeout_sec': (int, 10, 3600, TRANSCODE_TIMEOUT_SEC),
    'transcribe_min_timeout_sec': (int, 10, 3600, TRANSCRIBE_MIN_TIMEOUT_SEC),
    'workspace_ttl_sec': (int, 60, 86400, WORKSPACE_TTL_SEC),
    'reaper_interval_sec': (int, 10, 86400, REAPER_INTERVAL_SEC),
    'num_speakers': (int, 1, 32, DEFAULT_NUM_SPEAKERS),
}


def _defaults() -> dict:
    return {
        'workspace_root': str(default_workspace_root()),
        'fetch_timeout_sec': FETCH_TIMEOUT_SEC,
        'transcode_timeout_sec': TRANSCODE_TIMEOUT_SEC,
        'transcribe_min_timeout_sec': TRANSCRIBE_MIN_TIMEOUT_SEC,
        'workspace_ttl_sec': WORKSPACE_TTL_SEC,
        'reaper_interval_sec': REAPER_INTERVAL_SEC,
        'default_language': DEFAULT_LANGUAGE,
        'num_speakers': DEFAULT_NUM_SPEAKERS,
        'tag_audio_events': True,
    }


class AppConfig:
    """Manages application configuration stored as JSON."""

    def __init__(self, config_path: Path | None = None, environ: dict | None = None):
        env_path = (environ if environ is not None else os.environ).get(ENV_CONFIG_PATH)
        self.path = config_path or (Path(env_path) if env_path else CONFIG_PATH)
        self._environ = environ if environ is not None else os.environ
        self._data: dict = {}
        self.load()

    def load(self):
        """Load config from disk, merging with defaults, then apply env overrides."""
        self._data = _defaults()
        if self.path.exists():
            try:
                with open(self.path, 'r') as f:
                    saved = json.load(f)
                for key, value in saved.items():
                    self._data[key] = self._validate(key, value)
            except Exception as e:
                logger.warning("Failed to load config: %s", e)

        root = self._environ.get(ENV_WORKSPACE_ROOT)
        if root:
            self._data['workspace_root'] = root

    def save(self):
        """Persist config to disk."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, 'w') as f:
            json.dump(self._data, f, indent=2)

    def get(self, key: str, default=None):
        return self._data.get(key, default)

    def set(self, key: str, value):
        value = self._validate(key, value)
        self._data[key] = value
        self.save()

    def _validate(self, key: str, value):
        """Validate and coerce config values to safe ranges."""
        if key in _NUMERIC_BOUNDS:
            cast, lo, hi, default = _NUMERIC_BOUNDS[key]
            try:
                value = cast(value)
            except (TypeError, ValueError):
                logger.warning("Invalid %s %r — using default", key, value)
                return default
            return max(lo, min(hi, value))

        if key == 'default_language':
            if not isinstance(value, str) or not value.strip():
                logger.warning("Invalid default_language %r — using %s", value, DEFAULT_LANGUAGE)
                return DEFAULT_LANGUAGE
            return value.strip()

        if key == 'tag_audio_events':
            return bool(value)

        return value

    def as_dict(self) -> dict:
        return dict(self._data)

    @property
    def workspace_root(self) -> Path:
        return Path(self._data.get('workspace_root') or default_workspace_root())

    @property
    def api_key(self) -> str | None:
        return self._environ.get(ENV_API_KEY) or None

    @property
    def fetch_timeout_sec(self) -> int:
        return self._data['fetch_timeout_sec']

    @property
    def transcode_timeout_sec(self) -> int:
        return self._data['transcode_timeout_sec']

    @property
    def transcribe_min_timeout_sec(self) -> int:
        return self._data['transcribe_min_timeout_sec']

    @property
    def workspace_ttl_sec(self) -> int:
        return self._data['workspace_ttl_sec']

    @property
    def reaper_interval_sec(self) -> int:
        return self._data['reaper_interval_sec']

    @property
    def default_language(self) -> str:
        return self._data['default_language']

    @property
    def num_speakers(self) -> int:
        return self._data['num_speakers']

    @property
    def tag_audio_events(self) -> bool:
        return self._data['tag_audio_events']
