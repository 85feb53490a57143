"""Operational record ORM models — one class per logical table."""
import enum
from sqlalchemy import Column, Integer, String, Date, DateTime, Float, ForeignKey, Text, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base


class EquipmentStatus(str, enum.Enum):
    working = "WORKING"
    standby = "STANDBY"
    breakdown = "BREAKDOWN"


class FollowUpStatus(str, enum.Enum):
    open = "OPEN"
    close = "CLOSE"


class TimestampMixin:
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class CriticalIssue(TimestampMixin, Base):
    __tablename__ = "critical_issues"

    id = Column(Integer, primary_key=True, autoincrement=True)
    issue_name = Column(String(255), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    status = Column(SAEnum(EquipmentStatus), nullable=False, default=EquipmentStatus.breakdown)
    description = Column(String(500), nullable=False)


class MaintenanceRoutine(TimestampMixin, Base):
    __tablename__ = "maintenance_routine"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_name = Column(String(255), nullable=False)
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    description = Column(Text, nullable=True)


class KtaTta(TimestampMixin, Base):
    """KTA/TTA safety finding (unsafe condition / unsafe act)."""

    __tablename__ = "kta_tta"

    id = Column(Integer, primary_key=True, autoincrement=True)
    register_number = Column(String(50), nullable=True)
    reporter_npp = Column(String(50), nullable=False)
    reporter_name = Column(String(150), nullable=False)
    report_date = Column(Date, nullable=False)
    location = Column(String(255), nullable=True)
    finding_area = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=True)
    pic_department = Column(String(50), nullable=False)
    status = Column(SAEnum(FollowUpStatus), nullable=False, default=FollowUpStatus.open)
    due_date = Column(Date, nullable=True)


class SafetyIncident(TimestampMixin, Base):
    __tablename__ = "safety_incidents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    nearmiss = Column(Integer, nullable=False, default=0)
    equipment_accident = Column(Integer, nullable=False, default=0)
    minor_injury = Column(Integer, nullable=False, default=0)
    light_injury = Column(Integer, nullable=False, default=0)
    severe_injury = Column(Integer, nullable=False, default=0)
    fatality = Column(Integer, nullable=False, default=0)


class EnergyTarget(TimestampMixin, Base):
    __tablename__ = "energy_targets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    target = Column(Float, nullable=False)


class EnergyConsumption(TimestampMixin, Base):
    __tablename__ = "energy_consumption"

    id = Column(Integer, primary_key=True, autoincrement=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    mine_consumption = Column(Float, nullable=False, default=0)
    plant_consumption = Column(Float, nullable=False, default=0)
    supporting_consumption = Column(Float, nullable=False, default=0)
