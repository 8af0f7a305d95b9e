"""
Core Module
Job data contracts and engine configuration.

Exports:
    Models: JobSnapshot, JobStatus, LocationVerification, VerificationStatus
    Converters: to_job_snapshot, to_location_verification
    Config: EngineConfig
"""

from .models import (
    JobSnapshot,
    JobStatus,
    LocationVerification,
    VerificationStatus,
    MalformedJobError,
    to_job_snapshot,
    to_location_verification,
)

from .config import EngineConfig

__all__ = [
    # Models
    "JobSnapshot",
    "JobStatus",
    "LocationVerification",
    "VerificationStatus",
    "MalformedJobError",
    # Converters
    "to_job_snapshot",
    "to_location_verification",
    # Config
    "EngineConfig",
]
