"""
Service facade: the surface an HTTP layer or the CLI talks to.
Wires the quota gate, workspaces, pipeline and reaper together.
"""

import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path

from adscribe.core.constants import ArtifactKind
from adscribe.core.config import AppConfig
from adscribe.core.models import Job, StageResult
from adscribe.core.quota import QuotaGate
from adscribe.core.workspace import WorkspaceManager
from adscribe.core.pipeline import PipelineOrchestrator
from adscribe.core.cleanup import WorkspaceReaper
from adscribe.core.output_writer import download_name
from adscribe.core.diagnostics import feature_flags
from adscribe.core import voice

logger = logging.getLogger(__name__)


class TranscriberService:
    """
    Request-level operations. download(), process(), extract_audio(),
    transcribe() and the voice tools each consume one unit of daily quota;
    artifact lookups and status() do not.
    """

    def __init__(self, config: AppConfig | None = None,
                 quota: QuotaGate | None = None,
                 orchestrator: PipelineOrchestrator | None = None):
        self.config = config or AppConfig()
        self.quota = quota or QuotaGate()
        if orchestrator is not None:
            self.workspaces = orchestrator.workspaces
            self.orchestrator = orchestrator
        else:
            self.workspaces = WorkspaceManager(self.config.workspace_root)
            self.orchestrator = PipelineOrchestrator(self.workspaces, self.config)
        self.reaper = WorkspaceReaper(
            self.workspaces,
            ttl_sec=self.config.workspace_ttl_sec,
            interval_sec=self.config.reaper_interval_sec,
        )

    # ── Lifecycle ─────────────────────────────────────────────────────

    def start(self):
        self.workspaces.ensure_root()
        logger.info("Workspace root: %s", self.workspaces.root)
        self.reaper.start()

    def stop(self):
        self.reaper.stop()

    # ── Boundary surface ──────────────────────────────────────────────

    def admit(self) -> bool:
        allowed, _ = self.quota.admit()
        return allowed

    def create_job(self, source_url: str, language: str | None = None) -> Job:
        return self.orchestrator.create_job(source_url, language)

    def run_fetch(self, job_id: str) -> StageResult:
        return self.orchestrator.run_fetch(job_id)

    def run_transcode(self, job_id: str) -> StageResult:
        return self.orchestrator.run_transcode(job_id)

    def run_transcribe(self, job_id: str, language: str | None = None) -> StageResult:
        return self.orchestrator.run_transcribe(job_id, language)

    def run_full(self, job_id: str, source_url: str | None = None,
                 language: str | None = None) -> StageResult:
        return self.orchestrator.run_full(job_id, source_url, language)

    def get_job(self, job_id: str) -> Job | None:
        return self.orchestrator.get_job(job_id)

    def artifact_exists(self, job_id: str, kind: str) -> bool:
        return self.workspaces.exists(job_id, kind)

    def get_artifact_path(self, job_id: str, kind: str) -> Path:
        """Path of an existing artifact; ArtifactNotFound otherwise."""
        return self.workspaces.require(job_id, kind)

    def download_name(self, job_id: str, kind: str) -> str:
        return download_name(job_id, kind)

    # ── Request-level flows ──────────────────────────────────────────

    def download(self, source_url: str) -> StageResult:
        """
        Admit, create a job and fetch its video. The job is private to this
        call, so a failed fetch removes its workspace.
        """
        self.quota.require()
        job = self.create_job(source_url)
        result = self.run_fetch(job.id)
        if not result.success:
            self.workspaces.remove(job.id)
            result.artifacts = {}
            logger.info("[%s] Workspace removed after failed download", job.id)
        return result

    def extract_audio(self, job_id: str) -> StageResult:
        self.quota.require()
        return self.run_transcode(job_id)

    def transcribe(self, job_id: str, language: str | None = None) -> StageResult:
        self.quota.require()
        return self.run_transcribe(job_id, language)

    def process(self, source_url: str, language: str | None = None) -> StageResult:
        """Admit, create a job and run the whole pipeline."""
        self.quota.require()
        job = self.create_job(source_url, language)
        return self.run_full(job.id, language=language)

    def clone_voice(self, job_id: str) -> str:
        self.quota.require()
        audio_path = self.workspaces.require(job_id, ArtifactKind.AUDIO)
        return voice.clone_voice(audio_path, f"Ad-Voice-{job_id[:8]}", self.config.api_key)

    def text_to_speech(self, voice_id: str, text: str) -> Path:
        """Synthesize into a fresh workspace so the reaper reclaims it like any job."""
        self.quota.require()
        output_id = f"tts-{uuid.uuid4()}"
        output_dir = self.workspaces.create(output_id)
        try:
            return voice.text_to_speech(voice_id, text, self.config.api_key,
                                        output_dir / "speech.mp3")
        except Exception:
            self.workspaces.remove(output_id)
            raise

    def status(self) -> dict:
        quota = self.quota.status()
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "rate_limit": {
                "daily_limit": quota["limit"],
                "used_today": quota["count"],
                "remaining": quota["remaining"],
            },
            "features": feature_flags(self.config.api_key),
        }
