"""
Inventory synchronization -- post-commit goods receipt signal.

Responsibility:
    Tells the inventory subsystem that goods were received.  The pipeline
    only signals; stock mutation belongs to the collaborator.

Architecture position:
    Kernel > Services.  Called by the conversion orchestrator AFTER the
    receipt is committed.

Invariants enforced:
    - The call is bounded by a timeout; a slow collaborator cannot hold the
      caller indefinitely.
    - Failures are logged as DownstreamSyncFailedError and reported as
      ``SyncStatus.FAILED``; they never propagate and never undo the
      committed receipt.
"""

from __future__ import annotations

from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from enum import Enum
from typing import Protocol
from uuid import UUID

from commerce_kernel.domain.documents import LineItem
from commerce_kernel.exceptions import DownstreamSyncFailedError
from commerce_kernel.logging_config import get_logger

logger = get_logger("services.inventory_sync")


class SyncStatus(str, Enum):
    """Outcome of the post-commit inventory signal."""

    NOT_REQUIRED = "not_required"
    PENDING = "pending"  # caller owns the commit and has not dispatched yet
    DELIVERED = "delivered"
    FAILED = "failed"


class InventorySync(Protocol):
    """Collaborator notified of every committed goods receipt."""

    def notify_receipt(self, receipt_id: UUID, line_items: Sequence[LineItem]) -> None:
        ...


class NullInventorySync:
    """Default collaborator: accepts every notification and does nothing."""

    def notify_receipt(self, receipt_id: UUID, line_items: Sequence[LineItem]) -> None:
        logger.debug("inventory_sync_noop", extra={
            "receipt_id": str(receipt_id),
            "line_count": len(line_items),
        })


class InventorySyncDispatcher:
    """
    Runs the collaborator on a worker thread with a bounded wait.

    Contract:
        ``dispatch()`` never raises.  It returns DELIVERED when the
        collaborator returned within ``timeout_seconds``, FAILED otherwise.

    Non-goals:
        - No retries and no outbox; a failed signal is visible in the log
          and in the conversion result only.
    """

    def __init__(
        self,
        collaborator: InventorySync | None = None,
        timeout_seconds: float = 5.0,
        enabled: bool = True,
    ):
        self._collaborator = collaborator or NullInventorySync()
        self._timeout = timeout_seconds
        self._enabled = enabled

    @property
    def collaborator_name(self) -> str:
        return type(self._collaborator).__name__

    def dispatch(self, receipt_id: UUID, line_items: Sequence[LineItem]) -> SyncStatus:
        if not self._enabled:
            return SyncStatus.NOT_REQUIRED

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="inventory-sync")
        try:
            future = executor.submit(
                self._collaborator.notify_receipt, receipt_id, tuple(line_items),
            )
            try:
                future.result(timeout=self._timeout)
            except FuturesTimeoutError as exc:
                self._log_failure(receipt_id, f"timed out after {self._timeout}s", exc)
                return SyncStatus.FAILED
            except Exception as exc:
                self._log_failure(receipt_id, f"{type(exc).__name__}: {exc}", exc)
                return SyncStatus.FAILED
        finally:
            # Do not wait for a hung collaborator
            executor.shutdown(wait=False)

        logger.info("inventory_sync_delivered", extra={
            "receipt_id": str(receipt_id),
            "collaborator": self.collaborator_name,
            "line_count": len(line_items),
        })
        return SyncStatus.DELIVERED

    def _log_failure(self, receipt_id: UUID, reason: str, cause: BaseException) -> None:
        error = DownstreamSyncFailedError(
            document_id=str(receipt_id),
            collaborator=self.collaborator_name,
            reason=reason,
        )
        error.__cause__ = cause
        logger.warning(
            "inventory_sync_failed",
            exc_info=error,
            extra={
                "receipt_id": str(receipt_id),
                "collaborator": self.collaborator_name,
                "timeout_seconds": self._timeout,
            },
        )
