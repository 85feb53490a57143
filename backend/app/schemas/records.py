"""Pydantic schemas for operational record payloads.

Create schemas list the fields a new record must carry; update schemas are
all-optional for partial updates. Both reject unknown fields so a snapshot can
never name a column the table does not have.
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, Field

from app.models.operational import EquipmentStatus, FollowUpStatus


class RecordPayload(BaseModel):
    model_config = {"extra": "forbid"}


# --- critical_issues ---
class CriticalIssueCreate(RecordPayload):
    issue_name: str = Field(min_length=1, max_length=255)
    department_id: int
    status: EquipmentStatus = EquipmentStatus.breakdown
    description: str = Field(min_length=1, max_length=500)


class CriticalIssueUpdate(RecordPayload):
    issue_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    department_id: Optional[int] = None
    status: Optional[EquipmentStatus] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)


# --- maintenance_routine ---
class MaintenanceRoutineCreate(RecordPayload):
    job_name: str = Field(min_length=1, max_length=255)
    department_id: int
    start_date: date
    end_date: Optional[date] = None
    description: Optional[str] = None


class MaintenanceRoutineUpdate(RecordPayload):
    job_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    department_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    description: Optional[str] = None


# --- kta_tta ---
class KtaTtaCreate(RecordPayload):
    register_number: Optional[str] = Field(default=None, max_length=50)
    reporter_npp: str = Field(min_length=1, max_length=50)
    reporter_name: str = Field(min_length=1, max_length=150)
    report_date: date
    location: Optional[str] = Field(default=None, max_length=255)
    finding_area: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=50)
    pic_department: str = Field(min_length=1, max_length=50)
    status: FollowUpStatus = FollowUpStatus.open
    due_date: Optional[date] = None


class KtaTtaUpdate(RecordPayload):
    register_number: Optional[str] = Field(default=None, max_length=50)
    reporter_npp: Optional[str] = Field(default=None, min_length=1, max_length=50)
    reporter_name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    report_date: Optional[date] = None
    location: Optional[str] = Field(default=None, max_length=255)
    finding_area: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=50)
    pic_department: Optional[str] = Field(default=None, min_length=1, max_length=50)
    status: Optional[FollowUpStatus] = None
    due_date: Optional[date] = None


# --- safety_incidents ---
class SafetyIncidentCreate(RecordPayload):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    nearmiss: int = Field(default=0, ge=0)
    equipment_accident: int = Field(default=0, ge=0)
    minor_injury: int = Field(default=0, ge=0)
    light_injury: int = Field(default=0, ge=0)
    severe_injury: int = Field(default=0, ge=0)
    fatality: int = Field(default=0, ge=0)


class SafetyIncidentUpdate(RecordPayload):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000)
    nearmiss: Optional[int] = Field(default=None, ge=0)
    equipment_accident: Optional[int] = Field(default=None, ge=0)
    minor_injury: Optional[int] = Field(default=None, ge=0)
    light_injury: Optional[int] = Field(default=None, ge=0)
    severe_injury: Optional[int] = Field(default=None, ge=0)
    fatality: Optional[int] = Field(default=None, ge=0)


# --- energy_targets ---
class EnergyTargetCreate(RecordPayload):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    target: float = Field(ge=0)


class EnergyTargetUpdate(RecordPayload):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000)
    target: Optional[float] = Field(default=None, ge=0)


# --- energy_consumption ---
class EnergyConsumptionCreate(RecordPayload):
    month: int = Field(ge=1, le=12)
    year: int = Field(ge=2000)
    mine_consumption: float = Field(default=0, ge=0)
    plant_consumption: float = Field(default=0, ge=0)
    supporting_consumption: float = Field(default=0, ge=0)


class EnergyConsumptionUpdate(RecordPayload):
    month: Optional[int] = Field(default=None, ge=1, le=12)
    year: Optional[int] = Field(default=None, ge=2000)
    mine_consumption: Optional[float] = Field(default=None, ge=0)
    plant_consumption: Optional[float] = Field(default=None, ge=0)
    supporting_consumption: Optional[float] = Field(default=None, ge=0)
