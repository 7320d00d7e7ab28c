"""AI artifact cards."""

from .card import AICard, ConfirmRequest
from .models import (
    Artifact,
    ArtifactKey,
    ArtifactKind,
    CardState,
    CodeAnalysis,
    CommitExplanation,
    TaskReport,
)

__all__ = [
    "AICard",
    "ConfirmRequest",
    "Artifact",
    "ArtifactKey",
    "ArtifactKind",
    "CardState",
    "CodeAnalysis",
    "CommitExplanation",
    "TaskReport",
]
