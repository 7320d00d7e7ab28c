"""AI artifact models."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class ArtifactKind(StrEnum):
    COMMIT_EXPLANATION = "commit_explanation"
    CODE_ANALYSIS = "code_analysis"
    TASK_REPORT = "task_report"


class CardState(StrEnum):
    IDLE = "idle"
    LOADING = "loading"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass(frozen=True)
class ArtifactKey:
    """Identifies an artifact: a task/commit pair, or a commit alone."""

    task_id: str | None = None
    commit_sha: str | None = None

    def is_complete(self, kind: ArtifactKind) -> bool:
        if kind == ArtifactKind.CODE_ANALYSIS:
            return bool(self.commit_sha)
        return bool(self.task_id and self.commit_sha)

    @property
    def short_sha(self) -> str:
        return (self.commit_sha or "")[:8]


class Artifact(BaseModel):
    """Base for AI results. ``cached`` is reported by the server."""

    model_config = ConfigDict(
        extra="ignore",
        alias_generator=to_camel,
        populate_by_name=True,
    )

    cached: bool = False
    timestamp: datetime | None = None
    commit_sha: str = Field(default="", exclude=True)


class CommitExplanation(Artifact):
    sha: str = ""
    task_id: str = ""
    task_title: str = ""
    readable_id: str | int | None = None
    explanation: str = ""
    how_it_fulfills_task: str = ""
    remaining_work: list[str] = Field(default_factory=list)
    technical_details: str = ""


# Severity labels seen in analysis output; anything else counts as low
SEVERITY_ALIASES = {
    "critical": "high",
    "high": "high",
    "major": "medium",
    "medium": "medium",
    "moderate": "medium",
    "low": "low",
    "minor": "low",
    "info": "low",
}


class CodeIssue(BaseModel):
    """One finding of a code analysis. Fields are model-written, so parsing is lenient."""

    model_config = ConfigDict(extra="ignore")

    severity: Literal["high", "medium", "low"] = "low"
    title: str = ""
    file: str = ""
    line: int | None = None

    @field_validator("severity", mode="before")
    @classmethod
    def normalize_severity(cls, value: Any) -> str:
        severity = str(value or "").strip().lower()
        return SEVERITY_ALIASES.get(severity, "low")

    @field_validator("title", "file", mode="before")
    @classmethod
    def text_or_empty(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("line", mode="before")
    @classmethod
    def parse_line(cls, value: Any) -> int | None:
        try:
            return int(value)
        except (TypeError, ValueError):
            return None


class CodeAnalysis(Artifact):
    summary: str = ""
    score: str = ""
    issues: list[CodeIssue] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def score_as_text(cls, value: Any) -> str:
        # Scores arrive as letter grades or numbers
        return "" if value is None else str(value)

    @field_validator("issues", mode="before")
    @classmethod
    def issues_or_empty(cls, value: Any) -> Any:
        return value or []


class ReportSection(BaseModel):
    title: str = ""
    content: str = ""


class TaskReport(Artifact):
    summary: str = ""
    sections: list[ReportSection] = Field(default_factory=list)


ARTIFACT_TYPES: dict[ArtifactKind, type[Artifact]] = {
    ArtifactKind.COMMIT_EXPLANATION: CommitExplanation,
    ArtifactKind.CODE_ANALYSIS: CodeAnalysis,
    ArtifactKind.TASK_REPORT: TaskReport,
}

# Cosmetic progress messages cycled while a generation request is in flight
LOADING_MESSAGES: dict[ArtifactKind, tuple[str, ...]] = {
    ArtifactKind.COMMIT_EXPLANATION: (
        "Analyzing changes...",
        "Reading code patterns...",
        "Synthesizing logic...",
        "Generating explanation...",
    ),
    ArtifactKind.CODE_ANALYSIS: (
        "Scanning code structure...",
        "Detecting vulnerabilities...",
        "Checking security patterns...",
        "Validating inputs...",
    ),
    ArtifactKind.TASK_REPORT: (
        "Analyzing task progress...",
        "Reviewing comments...",
        "Checking commits...",
        "Compiling report...",
    ),
}
