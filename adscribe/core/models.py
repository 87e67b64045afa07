"""
Plain dataclass models for AdScribe.
"""

from dataclasses import dataclass, field
from typing import Optional

from adscribe.core.constants import JobStage, TokenKind


@dataclass
class Job:
    id: str                          # UUID, also the workspace directory name
    source_url: Optional[str] = None
    language: Optional[str] = None
    stage: str = JobStage.CREATED
    failed_stage: Optional[str] = None
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    artifacts: dict = field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass(frozen=True)
class DiarizedToken:
    text: str
    kind: str = TokenKind.WORD
    speaker_id: Optional[str] = None
    start: Optional[float] = None
    end: Optional[float] = None


@dataclass(frozen=True)
class FetchStrategy:
    name: str
    format_selector: str
    user_agent: Optional[str] = None
    extra_args: tuple = ()


@dataclass
class StageResult:
    job_id: str
    stage: str
    success: bool
    artifacts: dict = field(default_factory=dict)
    error: Optional[Exception] = None
    transcript: Optional[str] = None
