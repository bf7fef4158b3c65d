"""Batch moderation orchestrator with per-item isolation and ledger aggregation"""

import logging
import uuid
from collections import OrderedDict, defaultdict
from decimal import Decimal
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from sqlalchemy.orm import Session

from charity_gateway.config import settings
from charity_gateway.domain.approval import parse_action, parse_rejection_reason
from charity_gateway.domain.exceptions import DomainException
from charity_gateway.domain.models import (
    BatchProgress,
    BatchResult,
    ModerationAction,
    RejectionReason,
    SelectionRequest,
)
from charity_gateway.infrastructure.database.models import Contribution
from charity_gateway.infrastructure.observability.metrics import batch_size_histogram, record_moderation
from charity_gateway.services.ledger import CaseLedger
from charity_gateway.services.moderation import ModerationService, commit_or_raise
from charity_gateway.services.notifications import NotificationDispatcher
from charity_gateway.services.selection import SelectionResolver


def chunked(items: Sequence[Contribution], size: int) -> Iterator[Sequence[Contribution]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]


class BatchProgressRegistry:
    """Process-local progress snapshots, polled by batch id"""

    def __init__(self, retention: int = 100):
        self.retention = retention
        self._batches: "OrderedDict[str, BatchProgress]" = OrderedDict()

    def start(self, batch_id: str, action: str, total: int) -> BatchProgress:
        progress = BatchProgress(batch_id=batch_id, action=action, total=total)
        self._batches[batch_id] = progress
        while len(self._batches) > self.retention:
            self._batches.popitem(last=False)
        return progress

    def update(self, result: BatchResult, finished: bool = False) -> None:
        progress = self._batches.get(result.batch_id)
        if progress is None:
            return
        progress.processed = result.processed
        progress.success = result.success
        progress.failed = result.failed
        progress.finished = finished

    def get(self, batch_id: str) -> Optional[BatchProgress]:
        return self._batches.get(batch_id)


progress_registry = BatchProgressRegistry(retention=settings.batch_progress_retention)


class BatchModerationOrchestrator:
    """
    Apply one action to every contribution of a resolved selection.

    Processing model:
    - Validate action / reason and resolve the selection before any write
    - Walk items in fixed-size chunks (progress reporting only)
    - Each item runs the single-item transition in its own savepoint; a failure
      is recorded and the loop moves on
    - Approved amounts are summed per case and applied once per case
    - One commit, then per-item notifications (best effort)

    Already committed items are never rolled back automatically; the result's
    error list is what a caller uses for recovery.
    """

    def __init__(
        self,
        db: Session,
        dispatcher: NotificationDispatcher,
        chunk_size: int | None = None,
        registry: BatchProgressRegistry | None = None,
    ):
        self.db = db
        self.dispatcher = dispatcher
        self.chunk_size = chunk_size or settings.batch_chunk_size
        self.registry = registry or progress_registry
        self.ledger = CaseLedger(db)
        self.moderation = ModerationService(db, dispatcher, ledger=self.ledger)
        self.resolver = SelectionResolver(db)

    async def run(
        self,
        action: Optional[str],
        selection: SelectionRequest,
        admin_id: str,
        reason: Optional[str] = None,
        admin_comment: Optional[str] = None,
        batch_id: Optional[str] = None,
    ) -> BatchResult:
        moderation_action = parse_action(action)
        rejection_reason = None
        if moderation_action is ModerationAction.REJECT:
            rejection_reason = parse_rejection_reason(reason)

        contributions = self.resolver.resolve(selection)
        batch_size_histogram.observe(len(contributions))

        result = BatchResult(batch_id=batch_id or str(uuid.uuid4()), total=len(contributions))
        self.registry.start(result.batch_id, moderation_action.value, result.total)

        increments: Dict[str, Decimal] = defaultdict(Decimal)
        moderated: List[Contribution] = []

        for chunk_index, chunk in enumerate(chunked(contributions, self.chunk_size)):
            for contribution in chunk:
                try:
                    self._stage(contribution, moderation_action, admin_id, rejection_reason, admin_comment)
                except DomainException as e:
                    logging.warning(
                        f"Batch item failed: {e}",
                        extra={"batch_id": result.batch_id, "contribution_id": contribution.id},
                    )
                    result.record_failure(contribution.id, str(e))
                    continue
                except Exception as e:
                    logging.error(
                        f"Unexpected error processing contribution: {e}",
                        extra={"batch_id": result.batch_id, "contribution_id": contribution.id},
                    )
                    result.record_failure(contribution.id, str(e) or e.__class__.__name__)
                    continue

                result.record_success()
                moderated.append(contribution)
                if moderation_action is ModerationAction.APPROVE:
                    increments[contribution.case_id] += Decimal(str(contribution.amount))

            self.registry.update(result)
            logging.info(
                "Batch chunk processed",
                extra={
                    "batch_id": result.batch_id,
                    "chunk": chunk_index,
                    "processed": result.processed,
                    "total": result.total,
                },
            )

        if increments:
            self.ledger.apply_many(dict(increments))

        commit_or_raise(self.db, f"batch {result.batch_id}")
        self.registry.update(result, finished=True)
        record_moderation(moderation_action.value, succeeded=True, count=result.success)
        record_moderation(moderation_action.value, succeeded=False, count=result.failed)

        sent, undelivered = await self._notify(moderated, moderation_action, rejection_reason)
        logging.info(
            "Batch notifications dispatched",
            extra={"batch_id": result.batch_id, "notifications_sent": sent, "notifications_failed": undelivered},
        )
        return result

    def _stage(
        self,
        contribution: Contribution,
        action: ModerationAction,
        admin_id: str,
        reason: Optional[RejectionReason],
        admin_comment: Optional[str],
    ) -> None:
        if action is ModerationAction.APPROVE:
            self.moderation.stage_approval(contribution, admin_id, admin_comment)
        else:
            self.moderation.stage_rejection(contribution, admin_id, reason, admin_comment)

    async def _notify(
        self,
        contributions: List[Contribution],
        action: ModerationAction,
        reason: Optional[RejectionReason],
    ) -> Tuple[int, int]:
        """Per-item notifications; returns (sent, failed)"""
        sent = 0
        for contribution in contributions:
            if action is ModerationAction.APPROVE:
                delivered = await self.dispatcher.contribution_approved(contribution)
            else:
                delivered = await self.dispatcher.contribution_rejected(contribution, reason.value)
            if delivered:
                sent += 1
        return sent, len(contributions) - sent
