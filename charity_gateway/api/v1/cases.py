"""Case endpoints: read the running total and repair it from approved contributions"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from charity_gateway.api.dependencies import get_current_user_id, get_request_id, require_admin
from charity_gateway.api.errors import http_error
from charity_gateway.api.v1.schemas import CaseResponse, ReconcileResponse
from charity_gateway.infrastructure.database.repositories import CaseRepository
from charity_gateway.infrastructure.database.session import get_db
from charity_gateway.services.ledger import CaseLedger

router = APIRouter()


@router.get("/cases/{case_id}", response_model=CaseResponse)
def get_case(
    case_id: str,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    case = CaseRepository(db).get(case_id)
    if case is None:
        raise HTTPException(status_code=404, detail=f"Case {case_id} not found")
    return CaseResponse.model_validate(case)


@router.post("/admin/cases/{case_id}/reconcile", response_model=ReconcileResponse)
def reconcile_case(
    case_id: str,
    request: Request,
    db: Session = Depends(get_db),
    admin_id: str = Depends(require_admin),
):
    """
    Recompute current_amount as the sum of approved contributions.

    Repairs totals left behind by a skipped ledger update.
    """
    request_id = get_request_id(request)
    try:
        previous, total = CaseLedger(db).reconcile(case_id)
    except Exception as e:
        raise http_error(e, request_id)

    logging.info(
        "Case reconciled",
        extra={"request_id": request_id, "case_id": case_id, "admin_id": admin_id, "current_amount": str(total)},
    )
    return ReconcileResponse(case_id=case_id, previous_amount=previous, current_amount=total)
