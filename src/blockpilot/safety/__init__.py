"""Content preservation checks run before any document mutation."""

from .content_preservation import (
    DEFAULT_PRESERVATION_CONFIG,
    ContentImpact,
    ContentPreservationConfig,
    ContentPreservationResult,
    PreservationOperation,
    check_content_preservation,
    validate_content_deletion,
    validate_content_insertion,
    validate_content_modification,
)

__all__ = [
    "DEFAULT_PRESERVATION_CONFIG",
    "ContentImpact",
    "ContentPreservationConfig",
    "ContentPreservationResult",
    "PreservationOperation",
    "check_content_preservation",
    "validate_content_deletion",
    "validate_content_insertion",
    "validate_content_modification",
]
