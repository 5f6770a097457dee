"""Error recovery after every parse strategy has failed."""

from .engine import (
    OCR_SUBSTITUTIONS,
    RECOVERY_STRATEGIES,
    ChunkingStrategy,
    ErrorRecoveryEngine,
    FormatCleanupStrategy,
    PromptOptimizationStrategy,
    RecoveryStrategy,
    RegexFallbackStrategy,
    analyze_error,
    classify_error,
    clean_format,
)

__all__ = [
    "OCR_SUBSTITUTIONS",
    "RECOVERY_STRATEGIES",
    "ChunkingStrategy",
    "ErrorRecoveryEngine",
    "FormatCleanupStrategy",
    "PromptOptimizationStrategy",
    "RecoveryStrategy",
    "RegexFallbackStrategy",
    "analyze_error",
    "classify_error",
    "clean_format",
]
