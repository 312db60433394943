"""
services/reconciler_base.py
---------------------------
Shared scan/write machinery for the two reconcilers.

A reconciler pages through its candidates with keyset pagination and, for
each page, runs one handler per entity with bounded concurrency. Each handler
performs at most one condition-guarded single-document write, so there is
never anything to roll back across documents.

Per-entity outcome policy:
  NotFound / Conflict   → skipped (entity vanished or changed under us)
  InvariantViolation    → logged at error, listed in `errors`, skipped
  StoreUnavailable      → the rest of the page finishes, then the run aborts
                          with ReconciliationAborted carrying the partial result
  other StoreError      → logged as warning, listed in `failed`, skipped

The summary line is logged on every exit path, aborted runs included.
"""

import asyncio
from dataclasses import asdict, dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence

from placas.core.exceptions import (
    Conflict,
    InvariantViolation,
    NotFound,
    ReconciliationAborted,
    StoreError,
    StoreUnavailable,
)
from placas.core.logging import get_logger
from placas.db.gateway import StoreGateway

logger = get_logger(__name__)


@dataclass
class ReconcileResult:
    scanned: int = 0
    skipped: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    interrupted: bool = False
    aborted: bool = False

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


class BatchReconciler:
    """
    Base class; subclasses supply the page fetcher and the per-entity handler.

    `count_field` names the result attribute that counts applied writes.
    """

    name = "reconciler"
    count_field = "applied"

    def __init__(
        self,
        gateway: StoreGateway,
        batch_size: int = 200,
        concurrency: int = 8,
        stop_event: Optional[asyncio.Event] = None,
    ) -> None:
        if batch_size < 1 or concurrency < 1:
            raise ValueError("batch_size and concurrency must be positive")
        self._gateway = gateway
        self._batch_size = batch_size
        self._concurrency = concurrency
        self._stop_event = stop_event

    def _stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    async def _scan(
        self,
        fetch_page: Callable[[Optional[str]], Awaitable[Sequence[Any]]],
        handle: Callable[[Any], Awaitable[bool]],
        result: ReconcileResult,
    ) -> ReconcileResult:
        """Page through candidates until a short page, a stop request or an abort."""
        after_id: Optional[str] = None
        try:
            while True:
                if self._stop_requested():
                    result.interrupted = True
                    break
                batch = await fetch_page(after_id)
                if not batch:
                    break
                after_id = batch[-1].id
                result.scanned += len(batch)
                await self._run_batch(batch, handle, result)
                if len(batch) < self._batch_size:
                    break
        except StoreUnavailable as exc:
            result.aborted = True
            raise ReconciliationAborted(self.name, result, exc) from exc
        except Exception:
            result.aborted = True
            raise
        finally:
            self._log_summary(result)
        return result

    async def _run_batch(
        self,
        items: Sequence[Any],
        handle: Callable[[Any], Awaitable[bool]],
        result: ReconcileResult,
    ) -> int:
        """
        Apply `handle` to every item and fold outcomes into `result`,
        including the applied count, before any abort is raised.
        Returns how many items were actually transitioned.
        """
        semaphore = asyncio.Semaphore(self._concurrency)

        async def guarded(item: Any) -> bool:
            async with semaphore:
                return await handle(item)

        outcomes = await asyncio.gather(
            *(guarded(item) for item in items), return_exceptions=True
        )

        applied = 0
        unavailable: Optional[StoreUnavailable] = None
        unexpected: Optional[BaseException] = None
        for item, outcome in zip(items, outcomes):
            if outcome is True:
                applied += 1
            elif outcome is False:
                continue
            elif isinstance(outcome, (NotFound, Conflict)):
                result.skipped.append(item.id)
                logger.info("Entity skipped", job=self.name, entity_id=item.id, reason=str(outcome))
            elif isinstance(outcome, InvariantViolation):
                result.errors.append(item.id)
                logger.error(
                    "Invariant violation, entity skipped",
                    job=self.name,
                    entity_id=item.id,
                    reason=outcome.reason,
                )
            elif isinstance(outcome, StoreUnavailable):
                result.failed.append(item.id)
                unavailable = unavailable or outcome
            elif isinstance(outcome, StoreError):
                result.failed.append(item.id)
                logger.warning(
                    "Store error on entity, skipped",
                    job=self.name,
                    entity_id=item.id,
                    error=str(outcome),
                )
            elif isinstance(outcome, BaseException):
                unexpected = unexpected or outcome

        setattr(result, self.count_field, getattr(result, self.count_field) + applied)
        if unexpected is not None:
            raise unexpected
        if unavailable is not None:
            raise unavailable
        return applied

    def _log_summary(self, result: ReconcileResult) -> None:
        fields = dict(
            job=self.name,
            scanned=result.scanned,
            skipped=len(result.skipped),
            failed=result.failed,
            errors=result.errors,
            interrupted=result.interrupted,
            aborted=result.aborted,
        )
        fields[self.count_field] = getattr(result, self.count_field)
        if result.aborted:
            logger.warning("Reconciliation aborted", **fields)
        elif result.failed or result.errors:
            logger.warning("Reconciliation finished with problems", **fields)
        else:
            logger.info("Reconciliation finished", **fields)
