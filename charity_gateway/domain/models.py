"""Domain models - enums and plain dataclasses for the moderation workflow"""

import enum
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional


class ContributionStatus(str, enum.Enum):
    """Coarse status stored on the contribution itself"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalState(str, enum.Enum):
    """Detailed moderation status of one contribution"""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    ACKNOWLEDGED = "acknowledged"

    @property
    def coarse(self) -> ContributionStatus:
        """Coarse contribution status mirrored from this approval state"""
        if self is ApprovalState.ACKNOWLEDGED:
            return ContributionStatus.REJECTED
        return ContributionStatus(self.value)


class RejectionReason(str, enum.Enum):
    PAYMENT_PROOF_INVALID = "payment_proof_invalid"
    PAYMENT_NOT_RECEIVED = "payment_not_received"
    INSUFFICIENT_FUNDS = "insufficient_funds"
    DUPLICATE_PAYMENT = "duplicate_payment"
    WRONG_PAYMENT_METHOD = "wrong_payment_method"
    PAYMENT_EXPIRED = "payment_expired"
    WRONG_AMOUNT = "wrong_amount"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"
    OTHER = "other"


class ModerationAction(str, enum.Enum):
    APPROVE = "approve"
    REJECT = "reject"


class ApprovalEventKind(str, enum.Enum):
    """Entries of the append-only approval history"""

    APPROVED = "approved"
    REJECTED = "rejected"
    RESUBMITTED = "resubmitted"
    ACKNOWLEDGED = "acknowledged"


class PaymentMethod(str, enum.Enum):
    BANK_TRANSFER = "bank_transfer"
    MOBILE_WALLET = "mobile_wallet"
    CASH = "cash"
    CHECK = "check"
    IPN = "ipn"


class CaseStatus(str, enum.Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    PUBLISHED = "published"
    CLOSED = "closed"
    UNDER_REVIEW = "under_review"


class SelectMode(str, enum.Enum):
    ALL = "all"
    SEARCHED = "searched"


class NotificationKind(str, enum.Enum):
    CONTRIBUTION_PENDING = "contribution_pending"
    CONTRIBUTION_APPROVED = "contribution_approved"
    CONTRIBUTION_REJECTED = "contribution_rejected"
    CONTRIBUTION_REVISED = "contribution_revised"


@dataclass
class SelectionFilters:
    """Filters of a "searched" batch selection"""

    date_from: Optional[date] = None
    date_to: Optional[date] = None
    amount_min: Optional[Decimal] = None
    amount_max: Optional[Decimal] = None
    payment_method: Optional[str] = None
    search: Optional[str] = None
    donor_name: Optional[str] = None


@dataclass
class SelectionRequest:
    """Which contributions a batch operation should act on"""

    ids: Optional[List[str]] = None
    select_mode: Optional[str] = None
    filters: Optional[SelectionFilters] = None


@dataclass
class ContributionQuery:
    """Listing filters and paging for GET /v1/contributions"""

    status: Optional[str] = None
    search: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    payment_method: Optional[str] = None
    case_id: Optional[str] = None
    donor_id: Optional[str] = None  # Set for non-admin callers
    sort_by: str = "created_at"  # created_at | amount
    sort_order: str = "desc"
    page: int = 1
    limit: int = 10

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


@dataclass
class BatchItemError:
    id: str
    error: str


@dataclass
class BatchResult:
    """Outcome of one batch run; built per call and never persisted"""

    batch_id: str
    total: int
    success: int = 0
    failed: int = 0
    errors: List[BatchItemError] = field(default_factory=list)

    def record_success(self) -> None:
        self.success += 1

    def record_failure(self, contribution_id: str, message: str) -> None:
        self.failed += 1
        self.errors.append(BatchItemError(id=contribution_id, error=message))

    @property
    def processed(self) -> int:
        return self.success + self.failed

    @property
    def rollback_available(self) -> bool:
        """Informational: failures exist and the error list can drive recovery"""
        return self.failed > 0


@dataclass
class BatchProgress:
    """Polling snapshot of a running or finished batch"""

    batch_id: str
    action: str
    total: int
    processed: int = 0
    success: int = 0
    failed: int = 0
    finished: bool = False


@dataclass
class Notification:
    """Message handed to the notification service"""

    recipient_id: str
    kind: NotificationKind
    title: str
    message: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ContributionStats:
    total: int = 0
    pending: int = 0
    approved: int = 0
    rejected: int = 0
    total_amount: Decimal = Decimal("0")
