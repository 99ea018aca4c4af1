"""Leak-detection pipeline: secondary filtering, classification, orchestration."""

from __future__ import annotations

from leaksweep.pipeline.classifier import (
    SYSTEM_PROMPT,
    ClassificationReport,
    ClassificationWorker,
)
from leaksweep.pipeline.filters import (
    DeduplicationFilter,
    FilterDecision,
    SecondaryKeywordFilter,
    Verdict,
)
from leaksweep.pipeline.orchestrator import PipelineOrchestrator, SweepState, SweepStatus

__all__ = [
    "SYSTEM_PROMPT",
    "ClassificationReport",
    "ClassificationWorker",
    "DeduplicationFilter",
    "FilterDecision",
    "PipelineOrchestrator",
    "SecondaryKeywordFilter",
    "SweepState",
    "SweepStatus",
    "Verdict",
]
