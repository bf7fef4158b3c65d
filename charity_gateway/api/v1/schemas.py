"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContributionCreateRequest(BaseModel):
    """Request body for POST /v1/contributions"""

    case_id: str = Field(..., min_length=1, description="Target case identifier")
    amount: Decimal = Field(..., gt=0, description="Contribution amount")
    payment_method: str = Field(..., min_length=1, description="bank_transfer | mobile_wallet | cash | check | ipn")
    message: Optional[str] = None
    anonymous: bool = False
    proof_of_payment: Optional[str] = None


class CaseSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title_en: Optional[str] = None
    title_ar: Optional[str] = None


class PayerSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ApprovalStatusSchema(BaseModel):
    """Current approval record of a contribution"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    contribution_id: str
    status: str
    admin_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    admin_comment: Optional[str] = None
    donor_reply: Optional[str] = None
    donor_reply_date: Optional[datetime] = None
    payment_proof_url: Optional[str] = None
    resubmission_count: int
    created_at: datetime
    updated_at: datetime


class ApprovalEventSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kind: str
    status: str
    actor_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    comment: Optional[str] = None
    resubmission_count: int
    created_at: datetime


class ContributionResponse(BaseModel):
    """Contribution with its case, payer and current approval record"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    amount: Decimal
    case_id: Optional[str] = None
    donor_id: Optional[str] = None
    payment_method: str
    message: Optional[str] = None
    notes: Optional[str] = None
    anonymous: bool
    proof_of_payment: Optional[str] = None
    status: str
    created_at: datetime
    updated_at: datetime
    case: Optional[CaseSummary] = None
    donor: Optional[PayerSummary] = None
    approval_status: Optional[ApprovalStatusSchema] = None


class PaginationSchema(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool


class StatsSchema(BaseModel):
    total: int
    pending: int
    approved: int
    rejected: int
    total_amount: Decimal


class ContributionListResponse(BaseModel):
    """Response for GET /v1/contributions"""

    contributions: List[ContributionResponse]
    pagination: PaginationSchema
    stats: StatsSchema


class ApprovalStatusResponse(BaseModel):
    """Response for GET /v1/contributions/{id}/approval-status"""

    contribution_id: str
    approval_status: Optional[ApprovalStatusSchema] = None
    history: List[ApprovalEventSchema]


class ApprovalStatusUpdateRequest(BaseModel):
    """Request body for POST /v1/contributions/{id}/approval-status"""

    status: Optional[str] = Field(None, description="approved | rejected")
    rejection_reason: Optional[str] = None
    admin_comment: Optional[str] = None


class RevisionRequest(BaseModel):
    """Request body for POST /v1/contributions/{id}/revise"""

    donor_reply: Optional[str] = None
    payment_proof_url: Optional[str] = None


class AcknowledgeRequest(BaseModel):
    """Request body for POST /v1/contributions/{id}/acknowledge"""

    donor_reply: Optional[str] = None


class BatchFilters(BaseModel):
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    payment_method: Optional[str] = None
    search: Optional[str] = None
    donor_name: Optional[str] = None


class BatchRequest(BaseModel):
    """Request body for POST /v1/admin/contributions/batch

    Action and reason are checked by the orchestrator so that invalid values
    answer 400 like every other validation failure.
    """

    action: Optional[str] = None
    reason: Optional[str] = None
    admin_comment: Optional[str] = None
    ids: Optional[List[str]] = None
    select_mode: Optional[str] = None
    filters: Optional[BatchFilters] = None


class BatchItemErrorSchema(BaseModel):
    id: str
    error: str


class BatchResponse(BaseModel):
    """Response for POST /v1/admin/contributions/batch"""

    batch_id: str
    success: int
    failed: int
    total: int
    errors: Optional[List[BatchItemErrorSchema]] = None
    rollback_available: Optional[bool] = None


class BatchProgressResponse(BaseModel):
    batch_id: str
    action: str
    total: int
    processed: int
    success: int
    failed: int
    finished: bool


class CaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title_en: Optional[str] = None
    title_ar: Optional[str] = None
    status: str
    target_amount: Decimal
    current_amount: Decimal


class ReconcileResponse(BaseModel):
    case_id: str
    previous_amount: Decimal
    current_amount: Decimal
