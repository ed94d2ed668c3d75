"""Domain services."""

from src.domain.services.failure_classifier import (
    ClassificationInput,
    FailureClassifier,
    extract_affected_files,
)
from src.domain.services.suggestion_engine import SuggestionEngine

__all__ = [
    "ClassificationInput",
    "FailureClassifier",
    "SuggestionEngine",
    "extract_affected_files",
]
