"""ApprovalRequest ORM model — a proposed mutation awaiting review."""
import enum
from sqlalchemy import Column, Integer, String, DateTime, JSON, Enum as SAEnum
from sqlalchemy.sql import func
from app.database import Base


class RequestType(str, enum.Enum):
    data_change = "data_change"
    data_deletion = "data_deletion"
    data_creation = "data_creation"


class ApprovalStatus(str, enum.Enum):
    pending = "PENDING"
    approved = "APPROVED"
    rejected = "REJECTED"


class ApprovalRequest(Base):
    __tablename__ = "approval_requests"

    id = Column(Integer, primary_key=True, autoincrement=True)
    request_type = Column(SAEnum(RequestType), nullable=False)
    table_name = Column(String(64), nullable=False, index=True)
    record_id = Column(Integer, nullable=True)
    old_data = Column(JSON, nullable=False, default=dict)
    new_data = Column(JSON, nullable=False, default=dict)
    requester_id = Column(Integer, nullable=False, index=True)
    status = Column(SAEnum(ApprovalStatus), nullable=False, default=ApprovalStatus.pending, index=True)
    reviewer_id = Column(Integer, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    # Written after an approval; never changes status.
    applied_at = Column(DateTime(timezone=True), nullable=True)
    apply_error = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
