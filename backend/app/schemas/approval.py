"""Pydantic schemas for approval requests and mutation outcomes."""
from __future__ import annotations
from datetime import datetime
from typing import Optional, Any
from pydantic import BaseModel

from app.models.approval_request import ApprovalStatus, RequestType


class MutationSubmit(BaseModel):
    request_type: RequestType
    table_name: str
    record_id: Optional[int] = None
    old_data: dict[str, Any] = {}
    new_data: dict[str, Any] = {}


class ReviewDecision(BaseModel):
    decision: ApprovalStatus


class ApprovalRequestOut(BaseModel):
    id: int
    request_type: RequestType
    table_name: str
    record_id: Optional[int] = None
    old_data: dict[str, Any]
    new_data: dict[str, Any]
    requester_id: int
    status: ApprovalStatus
    reviewer_id: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None
    apply_error: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class MutationResult(BaseModel):
    """What the caller renders: "saved" when applied, "submitted" when pending."""

    applied: bool
    outcome: str  # applied | pending
    request: Optional[ApprovalRequestOut] = None
    record: Optional[dict[str, Any]] = None


class ReviewResult(BaseModel):
    status: ApprovalStatus
    request: ApprovalRequestOut
    record: Optional[dict[str, Any]] = None
    apply_error: Optional[str] = None


class ApprovalStats(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int


class ApprovalPage(BaseModel):
    data: list[ApprovalRequestOut]
    page: int
    limit: int
    has_more: bool


class PolicyOut(BaseModel):
    role: str
    department: Optional[str] = None
    requires_approval: bool
    can_delete: bool
    can_review: bool
    editable_tables: list[str]
