"""
Per-job workspace directories.

Layout: <root>/<job_id>/{video.mp4, audio.mp3, transcript.txt}
The interface stays narrow (create / path / exists / remove) so the backing
store can change without touching the pipeline.
"""

import os
import shutil
import logging
from pathlib import Path

from adscribe.core.constants import ARTIFACT_FILENAMES
from adscribe.core.error_codes import ArtifactNotFound, WorkspaceCreateError
from adscribe.core.security_utils import is_safe_job_id

logger = logging.getLogger(__name__)


class WorkspaceManager:
    """Owns the per-job directories under a single root."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def ensure_root(self):
        self.root.mkdir(parents=True, exist_ok=True)

    def _job_dir(self, job_id: str) -> Path:
        if not is_safe_job_id(job_id):
            raise ArtifactNotFound(str(job_id))
        return self.root / job_id

    # ── Lifecycle ─────────────────────────────────────────────────────

    def create(self, job_id: str) -> Path:
        """Create an empty workspace. Raises WorkspaceCreateError on storage failure."""
        if not is_safe_job_id(job_id):
            raise WorkspaceCreateError(str(job_id), f"Unsafe job id: {job_id!r}")
        path = self.root / job_id
        try:
            self.ensure_root()
            path.mkdir()
        except OSError as e:
            raise WorkspaceCreateError(job_id, f"Could not create workspace {path}: {e}")
        logger.debug("Created workspace: %s", path)
        return path

    def remove(self, job_id: str):
        """Delete the workspace and everything in it. Missing workspaces are ignored."""
        if not is_safe_job_id(job_id):
            return
        path = self.root / job_id
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            return
        logger.debug("Removed workspace: %s", path)

    # ── Artifacts ─────────────────────────────────────────────────────

    def artifact_path(self, job_id: str, kind: str) -> Path:
        """Deterministic location of an artifact. Does not check existence."""
        try:
            filename = ARTIFACT_FILENAMES[kind]
        except KeyError:
            raise ValueError(f"Unknown artifact kind: {kind!r}")
        return self._job_dir(job_id) / filename

    def exists(self, job_id: str, kind: str) -> bool:
        if not is_safe_job_id(job_id):
            return False
        return self.artifact_path(job_id, kind).is_file()

    def require(self, job_id: str, kind: str) -> Path:
        """Path of an existing artifact, or ArtifactNotFound."""
        path = self.artifact_path(job_id, kind)
        if not path.is_file():
            raise ArtifactNotFound(job_id, kind)
        return path

    def artifacts(self, job_id: str) -> dict:
        """kind -> path for every artifact currently present."""
        return {
            kind: str(self.artifact_path(job_id, kind))
            for kind in ARTIFACT_FILENAMES
            if self.exists(job_id, kind)
        }

    def discard(self, job_id: str, kind: str):
        """Remove a single (possibly partial) artifact."""
        if not self.workspace_exists(job_id):
            return
        path = self.artifact_path(job_id, kind)
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    # ── Reaper support ────────────────────────────────────────────────

    def workspace_exists(self, job_id: str) -> bool:
        if not is_safe_job_id(job_id):
            return False
        return (self.root / job_id).is_dir()

    def list_workspaces(self) -> list[str]:
        if not self.root.exists():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def last_modified(self, job_id: str) -> float:
        return self._job_dir(job_id).stat().st_mtime

    def touch(self, job_id: str):
        """Mark the workspace as recently active."""
        path = self._job_dir(job_id)
        if path.is_dir():
            os.utime(path, None)
