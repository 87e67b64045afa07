"""
Pipeline orchestrator.
Drives a job through Fetch -> Transcode -> Transcribe, one stage at a time.

Each stage can be entered on its own as long as its upstream artifact is
already in the workspace, so a caller can re-run transcription against a
previously produced audio file.

Workspaces may be removed by the reaper while a job is still running. When
that happens the caller gets ArtifactNotFound rather than a stage failure.
"""

import logging
import threading
import time
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Optional

from adscribe.core.constants import (
    JobStage, ArtifactKind, ErrorCode,
    AUDIO_CODEC, AUDIO_BITRATE, MAX_TRACKED_JOBS,
)
from adscribe.core.config import AppConfig
from adscribe.core.error_codes import JobError, StageFailure, ArtifactNotFound
from adscribe.core.models import Job, StageResult, FetchStrategy
from adscribe.core.workspace import WorkspaceManager
from adscribe.core.url_parse import validate_ad_library_url, extract_ad_id
from adscribe.core.download_video import download_video, DEFAULT_STRATEGIES
from adscribe.core.transcode import transcode_audio
from adscribe.core.transcribe_elevenlabs import transcribe_tokens
from adscribe.core.assemble import assemble_lines, format_transcript
from adscribe.core.output_writer import write_transcript

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """
    Runs pipeline stages for jobs and keeps a bounded in-memory job registry.
    Stages run in the calling thread; use submit_full() for background work.
    """

    def __init__(self, workspaces: WorkspaceManager,
                 config: AppConfig | None = None,
                 fetcher: Callable | None = None,
                 transcoder: Callable | None = None,
                 transcriber: Callable | None = None,
                 strategies: tuple[FetchStrategy, ...] | None = None,
                 monotonic: Callable[[], float] = time.monotonic,
                 max_jobs: int = MAX_TRACKED_JOBS):
        self.workspaces = workspaces
        self.config = config or AppConfig()
        self.fetcher = fetcher or download_video
        self.transcoder = transcoder or transcode_audio
        self.transcriber = transcriber or self._elevenlabs_transcriber
        self.strategies = tuple(strategies or DEFAULT_STRATEGIES)
        self._monotonic = monotonic
        self._max_jobs = max_jobs

        self._lock = threading.Lock()
        self._jobs: dict[str, Job] = {}
        self._activity: dict[str, float] = {}

    # ── Registry ──────────────────────────────────────────────────────

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def create_job(self, source_url: str | None = None,
                   language: str | None = None) -> Job:
        """Validate the source, allocate a workspace and register the job."""
        if source_url is not None:
            source_url = validate_ad_library_url(source_url)
        job_id = str(uuid.uuid4())
        self.workspaces.create(job_id)

        now = self._now()
        job = Job(id=job_id, source_url=source_url,
                  language=language or self.config.default_language,
                  created_at=now, updated_at=now)
        with self._lock:
            self._prune_locked()
            self._jobs[job_id] = job
            self._activity[job_id] = time.time()
        if source_url:
            logger.info("[%s] Job created for ad %s", job_id, extract_ad_id(source_url))
        else:
            logger.info("[%s] Job created without a source", job_id)
        return job

    def get_job(self, job_id: str) -> Optional[Job]:
        with self._lock:
            job = self._jobs.get(job_id)
            return replace(job, artifacts=dict(job.artifacts)) if job else None

    def _prune_locked(self):
        """Drop records idle past the workspace TTL, then cap the registry size."""
        cutoff = time.time() - self.config.workspace_ttl_sec
        for job_id in [j for j, t in self._activity.items() if t < cutoff]:
            self._jobs.pop(job_id, None)
            self._activity.pop(job_id, None)

        overflow = len(self._jobs) - self._max_jobs + 1
        if overflow > 0:
            oldest = sorted(self._activity, key=self._activity.get)[:overflow]
            for job_id in oldest:
                self._jobs.pop(job_id, None)
                self._activity.pop(job_id, None)

    def _get_or_restore(self, job_id: str) -> Job:
        """
        Registry record for job_id. Jobs known only by their workspace
        (restarted process, pruned record) are rebuilt from its artifacts.
        """
        with self._lock:
            job = self._jobs.get(job_id)
            if job is not None:
                return job

        if not self.workspaces.workspace_exists(job_id):
            raise ArtifactNotFound(job_id)

        if self.workspaces.exists(job_id, ArtifactKind.TRANSCRIPT):
            stage = JobStage.DONE
        elif self.workspaces.exists(job_id, ArtifactKind.AUDIO):
            stage = JobStage.TRANSCODED
        elif self.workspaces.exists(job_id, ArtifactKind.VIDEO):
            stage = JobStage.FETCHED
        else:
            stage = JobStage.CREATED

        now = self._now()
        job = Job(id=job_id, stage=stage, language=self.config.default_language,
                  artifacts=self.workspaces.artifacts(job_id),
                  created_at=now, updated_at=now)
        with self._lock:
            job = self._jobs.setdefault(job_id, job)
            self._activity[job_id] = time.time()
        logger.info("[%s] Job restored from workspace at stage %s", job_id, stage)
        return job

    def _set_stage(self, job: Job, stage: str):
        job.stage = stage
        job.updated_at = self._now()
        if stage != JobStage.FAILED:
            job.failed_stage = None
            job.error_code = None
            job.error_message = None
        job.artifacts = self.workspaces.artifacts(job.id)
        with self._lock:
            self._activity[job.id] = time.time()
        logger.info("[%s] Stage -> %s", job.id, stage)

    def _fail(self, job: Job, failure: StageFailure):
        job.failed_stage = failure.stage
        job.error_code = failure.code
        job.error_message = failure.message[:2000]
        self._set_stage(job, JobStage.FAILED)
        logger.error("[%s] %s failed: %s", job.id, failure.stage, failure.message)

    # ── Public stage entry points ────────────────────────────────────

    def run_fetch(self, job_id: str) -> StageResult:
        job = self._get_or_restore(job_id)
        return self._run_stage(job, self._fetch)

    def run_transcode(self, job_id: str) -> StageResult:
        job = self._get_or_restore(job_id)
        return self._run_stage(job, self._transcode)

    def run_transcribe(self, job_id: str, language: str | None = None) -> StageResult:
        job = self._get_or_restore(job_id)
        return self._run_stage(job, self._transcribe, language)

    def run_full(self, job_id: str, source_url: str | None = None,
                 language: str | None = None) -> StageResult:
        """
        Fetch, transcode and transcribe. Any failure removes the whole
        workspace: nothing from a partially failed end-to-end run is kept.
        """
        job = self._get_or_restore(job_id)
        if source_url is not None:
            job.source_url = validate_ad_library_url(source_url)

        try:
            result = self._run_stage(job, self._full, language)
        except ArtifactNotFound:
            self.workspaces.remove(job_id)
            raise

        if not result.success:
            self.workspaces.remove(job_id)
            result.artifacts = {}
            job.artifacts = {}
            logger.info("[%s] Workspace removed after failed end-to-end run", job_id)
        return result

    def submit_full(self, job_id: str, source_url: str | None = None,
                    language: str | None = None,
                    on_done: Callable[[StageResult], None] | None = None) -> threading.Thread:
        """Run run_full() on a daemon worker thread."""
        def _worker():
            try:
                result = self.run_full(job_id, source_url, language)
            except JobError as e:
                logger.warning("[%s] Background run aborted: %s", job_id, e)
                return
            except Exception as e:
                logger.error("[%s] Background run crashed: %s", job_id, e, exc_info=True)
                return
            if on_done:
                on_done(result)

        thread = threading.Thread(target=_worker, name=f"job-{job_id[:8]}", daemon=True)
        thread.start()
        return thread

    # ── Stage plumbing ────────────────────────────────────────────────

    def _run_stage(self, job: Job, stage_fn: Callable, *args) -> StageResult:
        try:
            transcript = stage_fn(job, *args)
        except ArtifactNotFound:
            raise
        except StageFailure as e:
            failure = e
        except JobError as e:
            failure = StageFailure.wrap(job.stage, e)
        except Exception as e:
            logger.error("[%s] Unexpected error in %s: %s", job.id, job.stage, e, exc_info=True)
            failure = StageFailure(job.stage, ErrorCode.UNEXPECTED, str(e)[:2000], retryable=True)
        else:
            return StageResult(job.id, job.stage, True,
                               artifacts=self.workspaces.artifacts(job.id),
                               transcript=transcript)

        if not self.workspaces.workspace_exists(job.id):
            # Reaped mid-flight: report it the same way any later lookup would
            logger.warning("[%s] Workspace disappeared during %s", job.id, failure.stage)
            raise ArtifactNotFound(job.id)

        self._fail(job, failure)
        return StageResult(job.id, failure.stage, False,
                           artifacts=self.workspaces.artifacts(job.id),
                           error=failure)

    def _require_workspace(self, job: Job):
        if not self.workspaces.workspace_exists(job.id):
            raise ArtifactNotFound(job.id)

    def _fetch(self, job: Job) -> None:
        """
        Try each fetch strategy in order until one yields the video artifact.
        A timed-out attempt falls through like any other failure; the stage
        only times out once the shared wall-clock budget is spent.
        """
        self._require_workspace(job)
        if not job.source_url:
            raise StageFailure(JobStage.FETCHING, ErrorCode.INVALID_URL,
                               "No source URL recorded for job", retryable=False)

        self._set_stage(job, JobStage.FETCHING)
        dest = self.workspaces.artifact_path(job.id, ArtifactKind.VIDEO)
        per_attempt = self.config.fetch_timeout_sec
        deadline = self._monotonic() + per_attempt * len(self.strategies)
        last_error: JobError | None = None

        for strategy in self.strategies:
            remaining = deadline - self._monotonic()
            if remaining <= 0:
                raise StageFailure(JobStage.FETCHING, ErrorCode.DOWNLOAD_TIMEOUT,
                                   "Fetch time budget exhausted")

            logger.info("[%s] Fetching with %s strategy", job.id, strategy.name)
            try:
                self.fetcher(job.source_url, dest, strategy,
                             timeout=min(per_attempt, remaining))
            except JobError as e:
                self.workspaces.discard(job.id, ArtifactKind.VIDEO)
                logger.warning("[%s] %s strategy failed: %s", job.id, strategy.name, e.message)
                last_error = e
                continue

            if self.workspaces.exists(job.id, ArtifactKind.VIDEO):
                self.workspaces.touch(job.id)
                self._set_stage(job, JobStage.FETCHED)
                return None

            last_error = JobError(ErrorCode.DOWNLOAD_FAILED,
                                  f"Video missing from workspace after {strategy.name} strategy")
            logger.warning("[%s] %s", job.id, last_error.message)

        if last_error is None:
            last_error = JobError(ErrorCode.DOWNLOAD_FAILED, "No fetch strategies configured")
        raise StageFailure.wrap(JobStage.FETCHING, last_error)

    def _transcode(self, job: Job) -> None:
        """No retry: a transcoding failure is a content problem."""
        source = self.workspaces.require(job.id, ArtifactKind.VIDEO)
        self._set_stage(job, JobStage.TRANSCODING)
        output = self.workspaces.artifact_path(job.id, ArtifactKind.AUDIO)
        try:
            self.transcoder(source, output, AUDIO_CODEC, AUDIO_BITRATE,
                            timeout=self.config.transcode_timeout_sec)
        except JobError as e:
            self.workspaces.discard(job.id, ArtifactKind.AUDIO)
            raise StageFailure.wrap(JobStage.TRANSCODING, e)

        if not self.workspaces.exists(job.id, ArtifactKind.AUDIO):
            raise StageFailure(JobStage.TRANSCODING, ErrorCode.FFMPEG_TRANSCODE,
                               "Audio missing from workspace after transcode")
        self.workspaces.touch(job.id)
        self._set_stage(job, JobStage.TRANSCODED)
        return None

    def _transcribe(self, job: Job, language: str | None = None) -> str:
        """Transcribe the audio artifact, extracting it from the video first if needed."""
        language = language or job.language or self.config.default_language
        job.language = language

        if not self.workspaces.exists(job.id, ArtifactKind.AUDIO):
            if not self.workspaces.exists(job.id, ArtifactKind.VIDEO):
                raise ArtifactNotFound(job.id, ArtifactKind.AUDIO)
            logger.info("[%s] No audio yet, extracting from video", job.id)
            self._transcode(job)

        audio_path = self.workspaces.require(job.id, ArtifactKind.AUDIO)
        self._set_stage(job, JobStage.TRANSCRIBING)
        try:
            tokens = self.transcriber(audio_path, language)
        except JobError as e:
            raise StageFailure.wrap(JobStage.TRANSCRIBING, e)

        text = format_transcript(assemble_lines(tokens))
        self._require_workspace(job)
        write_transcript(text, self.workspaces.artifact_path(job.id, ArtifactKind.TRANSCRIPT))
        self.workspaces.touch(job.id)
        self._set_stage(job, JobStage.DONE)
        return text

    def _full(self, job: Job, language: str | None = None) -> str:
        self._fetch(job)
        self._transcode(job)
        return self._transcribe(job, language)

    # ── Default collaborators ─────────────────────────────────────────

    def _elevenlabs_transcriber(self, audio_path, language: str):
        return transcribe_tokens(
            audio_path, language,
            api_key=self.config.api_key,
            num_speakers=self.config.num_speakers,
            tag_audio_events=self.config.tag_audio_events,
            min_timeout=self.config.transcribe_min_timeout_sec,
        )
