"""
Voice generation pipeline: clone, per-language fan-out, slot lifecycle.
"""

from .cloner import CloneOutcome, VoiceCloneOrchestrator, build_voice_name
from .generator import (
    AggregateStatus,
    GenerationReport,
    LanguageGenerator,
    LanguageOutcome,
    LanguageResult,
)
from .lifecycle import (
    CleanupFilter,
    CleanupReport,
    VoiceLifecycleManager,
    VoiceSummary,
)
from .locks import SubmissionLocks
from .service import BatchItem, PipelineService, ProcessResult

__all__ = [
    "SubmissionLocks",
    "VoiceCloneOrchestrator",
    "CloneOutcome",
    "build_voice_name",
    "LanguageGenerator",
    "LanguageOutcome",
    "LanguageResult",
    "AggregateStatus",
    "GenerationReport",
    "VoiceLifecycleManager",
    "CleanupFilter",
    "CleanupReport",
    "VoiceSummary",
    "PipelineService",
    "ProcessResult",
    "BatchItem",
]
