"""Contribution endpoints: donor submission, listing and the single-item approval surface"""

import logging
import math
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from charity_gateway.api.dependencies import (
    get_current_user_id,
    get_is_admin,
    get_notification_dispatcher,
    get_request_id,
    require_admin,
)
from charity_gateway.api.errors import http_error
from charity_gateway.api.v1.schemas import (
    AcknowledgeRequest,
    ApprovalEventSchema,
    ApprovalStatusResponse,
    ApprovalStatusSchema,
    ApprovalStatusUpdateRequest,
    ContributionCreateRequest,
    ContributionListResponse,
    ContributionResponse,
    PaginationSchema,
    RevisionRequest,
    StatsSchema,
)
from charity_gateway.config import settings
from charity_gateway.domain.models import ContributionQuery
from charity_gateway.infrastructure.database.session import get_db
from charity_gateway.services.contributions import ContributionService
from charity_gateway.services.moderation import ModerationService
from charity_gateway.services.notifications import NotificationDispatcher
from charity_gateway.services.revision import DonorRevisionService

router = APIRouter()


@router.post("/contributions", response_model=ContributionResponse, status_code=201)
async def create_contribution(
    request_body: ContributionCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Submit a contribution to a published case; it starts out pending"""
    request_id = get_request_id(request)
    try:
        contribution = await ContributionService(db, dispatcher).submit(
            donor_id=user_id,
            case_id=request_body.case_id,
            amount=request_body.amount,
            payment_method=request_body.payment_method,
            message=request_body.message,
            anonymous=request_body.anonymous,
            proof_of_payment=request_body.proof_of_payment,
        )
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)

    return ContributionResponse.model_validate(contribution)


@router.get("/contributions", response_model=ContributionListResponse)
def list_contributions(
    request: Request,
    status: Optional[str] = Query(None, description="all | pending | approved | rejected"),
    search: Optional[str] = Query(None, description="Case title (either language) or payer name/email"),
    date_from: Optional[date] = Query(None),
    date_to: Optional[date] = Query(None),
    payment_method: Optional[str] = Query(None),
    case_id: Optional[str] = Query(None),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc"),
    page: int = Query(1),
    limit: int = Query(10),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
):
    """
    Paginated contribution listing.

    Admins see every contribution; donors only their own. Stats cover the
    same visibility scope, independent of the filters.
    """
    request_id = get_request_id(request)
    criteria = ContributionQuery(
        status=status,
        search=search,
        date_from=date_from,
        date_to=date_to,
        payment_method=payment_method,
        case_id=case_id,
        donor_id=None if is_admin else user_id,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
    )
    try:
        items, total, stats = ContributionService(db).search(criteria, max_page_size=settings.max_page_size)
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)

    total_pages = math.ceil(total / criteria.limit) if total else 0
    return ContributionListResponse(
        contributions=[ContributionResponse.model_validate(c) for c in items],
        pagination=PaginationSchema(
            page=criteria.page,
            limit=criteria.limit,
            total=total,
            total_pages=total_pages,
            has_next_page=criteria.page < total_pages,
            has_previous_page=criteria.page > 1,
        ),
        stats=StatsSchema(
            total=stats.total,
            pending=stats.pending,
            approved=stats.approved,
            rejected=stats.rejected,
            total_amount=stats.total_amount,
        ),
    )


@router.get("/contributions/{contribution_id}", response_model=ContributionResponse)
def get_contribution(
    contribution_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
):
    request_id = get_request_id(request)
    try:
        contribution = ContributionService(db).get_visible(contribution_id, user_id, is_admin)
    except Exception as e:
        raise http_error(e, request_id)
    return ContributionResponse.model_validate(contribution)


@router.get("/contributions/{contribution_id}/approval-status", response_model=ApprovalStatusResponse)
def get_approval_status(
    contribution_id: str,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    is_admin: bool = Depends(get_is_admin),
):
    """Current approval record plus the full transition history"""
    request_id = get_request_id(request)
    service = ContributionService(db)
    try:
        contribution = service.get_visible(contribution_id, user_id, is_admin)
        history = service.approval_history(contribution)
    except Exception as e:
        raise http_error(e, request_id)

    record = contribution.approval_status
    return ApprovalStatusResponse(
        contribution_id=contribution.id,
        approval_status=ApprovalStatusSchema.model_validate(record) if record is not None else None,
        history=[ApprovalEventSchema.model_validate(event) for event in history],
    )


@router.post("/contributions/{contribution_id}/approval-status", response_model=ApprovalStatusSchema)
async def update_approval_status(
    contribution_id: str,
    request_body: ApprovalStatusUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """
    Approve or reject a single pending contribution.

    Flow:
    1. Validate status / rejection reason
    2. Write approval record + coarse status
    3. Increment the case total on approval
    4. Notify the payer
    """
    request_id = get_request_id(request)
    try:
        record = await ModerationService(db, dispatcher).set_status(
            contribution_id,
            request_body.status,
            admin_id,
            rejection_reason=request_body.rejection_reason,
            admin_comment=request_body.admin_comment,
        )
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)

    logging.info(
        "Approval status updated",
        extra={"request_id": request_id, "contribution_id": contribution_id, "status": record.status},
    )
    return ApprovalStatusSchema.model_validate(record)


@router.post("/contributions/{contribution_id}/revise", response_model=ApprovalStatusSchema)
async def revise_contribution(
    contribution_id: str,
    request_body: RevisionRequest,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Donor resubmits a rejected contribution with a reply and optionally a new proof"""
    request_id = get_request_id(request)
    try:
        record = await DonorRevisionService(db, dispatcher).resubmit(
            contribution_id,
            user_id,
            request_body.donor_reply,
            payment_proof_url=request_body.payment_proof_url,
        )
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)
    return ApprovalStatusSchema.model_validate(record)


@router.post("/contributions/{contribution_id}/acknowledge", response_model=ApprovalStatusSchema)
async def acknowledge_rejection(
    contribution_id: str,
    request_body: AcknowledgeRequest,
    request: Request,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """Donor accepts the rejection; no further resubmission is possible"""
    request_id = get_request_id(request)
    try:
        record = await DonorRevisionService(db, dispatcher).acknowledge(
            contribution_id, user_id, request_body.donor_reply
        )
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)
    return ApprovalStatusSchema.model_validate(record)
