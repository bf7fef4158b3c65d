"""POST /v1/admin/contributions/batch - bulk approve / reject"""

import time
import uuid

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from charity_gateway.api.dependencies import get_notification_dispatcher, get_request_id, require_admin
from charity_gateway.api.errors import http_error
from charity_gateway.api.v1.schemas import (
    BatchItemErrorSchema,
    BatchProgressResponse,
    BatchRequest,
    BatchResponse,
)
from charity_gateway.domain.models import SelectionFilters, SelectionRequest
from charity_gateway.infrastructure.database.session import get_db
from charity_gateway.infrastructure.observability.logging import log_batch_outcome
from charity_gateway.services.batch import BatchModerationOrchestrator, progress_registry
from charity_gateway.services.notifications import NotificationDispatcher

router = APIRouter()


@router.post("/admin/contributions/batch", response_model=BatchResponse, response_model_exclude_none=True)
async def moderate_batch(
    request_body: BatchRequest,
    request: Request,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
):
    """
    Apply one action to a selection of pending contributions.

    Flow:
    1. Validate action (and reason when rejecting)
    2. Resolve the selection (explicit ids, all pending, or search filters)
    3. Moderate each item in isolation, collecting per-item errors
    4. Update each affected case total once
    5. Notify payers, then report counts
    """
    start_time = time.time()
    request_id = get_request_id(request)
    batch_id = str(uuid.uuid4())

    filters = None
    if request_body.filters is not None:
        filters = SelectionFilters(**request_body.filters.model_dump())
    selection = SelectionRequest(
        ids=request_body.ids,
        select_mode=request_body.select_mode,
        filters=filters,
    )

    try:
        result = await BatchModerationOrchestrator(db, dispatcher).run(
            request_body.action,
            selection,
            admin_id,
            reason=request_body.reason,
            admin_comment=request_body.admin_comment,
            batch_id=batch_id,
        )
    except Exception as e:
        db.rollback()
        raise http_error(e, request_id)

    duration_ms = (time.time() - start_time) * 1000
    log_batch_outcome(
        request_id, result.batch_id, request_body.action, result.total, result.success, result.failed, duration_ms
    )

    response = BatchResponse(
        batch_id=result.batch_id,
        success=result.success,
        failed=result.failed,
        total=result.total,
    )
    if result.errors:
        response.errors = [BatchItemErrorSchema(id=err.id, error=err.error) for err in result.errors]
        response.rollback_available = result.rollback_available
    return response


@router.get("/admin/contributions/batch/{batch_id}", response_model=BatchProgressResponse)
def get_batch_progress(batch_id: str, admin_id: str = Depends(require_admin)):
    """Progress of a batch started by this process"""
    progress = progress_registry.get(batch_id)
    if progress is None:
        raise HTTPException(status_code=404, detail=f"Batch {batch_id} not found")
    return BatchProgressResponse(
        batch_id=progress.batch_id,
        action=progress.action,
        total=progress.total,
        processed=progress.processed,
        success=progress.success,
        failed=progress.failed,
        finished=progress.finished,
    )
