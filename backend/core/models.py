"""
Domain Models
The SINGLE SOURCE OF TRUTH for job data formats.

After normalization, the alert engine only sees these types.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import Any, Dict, Optional
from datetime import date, datetime, time
from enum import Enum


class MalformedJobError(ValueError):
    """Raised when a record cannot be turned into a JobSnapshot"""


# =============================================================================
# Job Status
# =============================================================================

class JobStatus(str, Enum):
    """Known job statuses from the record store"""
    ENTERED = "Entered"
    IN_PROGRESS = "In-Progress"
    COMPLETED = "Completed"
    ATTEMPTED = "Attempted"
    RESCHEDULED = "Re-scheduled"
    CANCELED = "Canceled"
    DELETED = "DELETED"


# =============================================================================
# JobSnapshot: The Core Data Contract
# =============================================================================

class JobSnapshot(BaseModel):
    """
    A job's externally observed state at sample time.

    This is THE internal representation. Rules never see record-store
    rows or API payloads. They see ONLY JobSnapshots.

    Fields:
        job_id: Stable job identifier
        status: Status string (unknown statuses are allowed)
        driver_status: Status reported by the driver, if any
        truck_id / driver_id: Assignment, None when unassigned
        job_date: Scheduled day
        arrival_at / completed_at: Timestamps on job_date
    """
    model_config = ConfigDict(frozen=True)

    job_id: str = Field(..., min_length=1)
    status: str = ""
    driver_status: Optional[str] = None
    truck_id: Optional[str] = None
    driver_id: Optional[str] = None
    job_date: Optional[date] = None
    arrival_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    job_type: Optional[str] = None
    record_id: Optional[str] = None

    @field_validator('job_id', mode='before')
    @classmethod
    def stringify_id(cls, v):
        """Record stores hand out numeric ids"""
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(int(v))
        return v.strip() if isinstance(v, str) else v

    @field_validator('truck_id', 'driver_id', 'driver_status', 'record_id', mode='before')
    @classmethod
    def blank_to_none(cls, v):
        """Empty strings mean 'not set'"""
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator('arrival_at', 'completed_at')
    @classmethod
    def naive_timestamps(cls, v):
        return _to_naive_local(v) if v is not None else None

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @property
    def has_truck(self) -> bool:
        return self.truck_id is not None

    @property
    def has_driver(self) -> bool:
        return self.driver_id is not None

    @property
    def has_arrival(self) -> bool:
        return self.arrival_at is not None

    @property
    def has_completion(self) -> bool:
        return self.completed_at is not None


# =============================================================================
# Location Verification: side input, supplied per cycle
# =============================================================================

class VerificationStatus(str, Enum):
    """Outcome of comparing truck position with the job location"""
    VERIFIED = "verified"
    OFF_SCHEDULE = "off_schedule"
    UNKNOWN = "unknown"


class LocationVerification(BaseModel):
    """
    Fleet-location check for one job.

    Computed elsewhere; the engine only reads it.
    """
    model_config = ConfigDict(frozen=True)

    status: VerificationStatus = VerificationStatus.UNKNOWN
    distance: float = Field(default=0.0, ge=0)
    has_tracking: Optional[bool] = None
    truck_id: Optional[str] = None

    @field_validator('distance', mode='before')
    @classmethod
    def none_distance(cls, v):
        return 0.0 if v is None else v


# =============================================================================
# Converters: External → Internal
# =============================================================================

def _parse_job_date(value: Any) -> Optional[date]:
    """MM/DD/YYYY (record store) or ISO date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    for fmt in ("%m/%d/%Y", "%Y-%m-%d"):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def _to_naive_local(value: datetime) -> datetime:
    """Offset-aware timestamps become naive local time, like the engine clock"""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def _parse_time_on(job_date: Optional[date], value: Any) -> Optional[datetime]:
    """Combine an HH:MM[:SS] time of day with the job date"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_naive_local(value)
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _to_naive_local(datetime.fromisoformat(text))
    except ValueError:
        pass
    if job_date is None:
        return None
    for fmt in ("%H:%M:%S", "%H:%M"):
        try:
            t = datetime.strptime(text, fmt).time()
            return datetime.combine(job_date, t)
        except ValueError:
            continue
    return None


def to_job_snapshot(data: Dict[str, Any]) -> JobSnapshot:
    """
    Convert an external job record to JobSnapshot.

    This is the NORMALIZATION POINT.
    All job formats go through here.

    Handles:
    - flat dicts (job_id, status, truck_id, ...)
    - record-store rows ({"recordId": ..., "fieldData": {...}})
    - MM/DD/YYYY dates and HH:MM:SS times on the job date
    """
    if not isinstance(data, dict):
        raise MalformedJobError(f"Job record must be a mapping, got {type(data).__name__}")

    if "fieldData" in data:
        fields = data.get("fieldData") or {}
        if not isinstance(fields, dict):
            raise MalformedJobError(f"fieldData must be a mapping, got {type(fields).__name__}")
        job_id = fields.get("_kp_job_id") or data.get("recordId")
        job_date = _parse_job_date(fields.get("job_date"))
        payload = {
            "job_id": job_id,
            "status": fields.get("job_status"),
            "driver_status": fields.get("job_status_driver"),
            "truck_id": fields.get("_kf_trucks_id"),
            "driver_id": fields.get("_kf_driver_id"),
            "job_date": job_date,
            # the record store spells it "arival"
            "arrival_at": _parse_time_on(job_date, fields.get("time_arival")),
            "completed_at": _parse_time_on(job_date, fields.get("time_complete")),
            "job_type": fields.get("job_type") or None,
            "record_id": data.get("recordId"),
        }
    else:
        job_id = data.get("job_id") or data.get("jobId") or data.get("id")
        job_date = _parse_job_date(data.get("job_date") or data.get("jobDate"))
        payload = {
            "job_id": job_id,
            "status": data.get("status"),
            "driver_status": data.get("driver_status"),
            "truck_id": data.get("truck_id") or data.get("truckId"),
            "driver_id": data.get("driver_id") or data.get("driverId"),
            "job_date": job_date,
            "arrival_at": _parse_time_on(job_date, data.get("arrival_at") or data.get("arrivalTimestamp")),
            "completed_at": _parse_time_on(job_date, data.get("completed_at") or data.get("completionTimestamp")),
            "job_type": data.get("job_type") or None,
            "record_id": data.get("record_id"),
        }

    if job_id is None or str(job_id).strip() == "":
        raise MalformedJobError("Job record has no job id")

    return JobSnapshot(**payload)


def to_location_verification(data: Dict[str, Any]) -> LocationVerification:
    """Convert an external verification result to LocationVerification"""
    status = data.get("status") or data.get("verificationStatus") or VerificationStatus.UNKNOWN
    has_tracking = data.get("has_tracking")
    if has_tracking is None:
        has_tracking = data.get("hasTracking", data.get("hasSamsaraTracking"))

    return LocationVerification(
        status=status,
        distance=data.get("distance"),
        has_tracking=has_tracking,
        truck_id=data.get("truck_id") or data.get("truckId"),
    )
