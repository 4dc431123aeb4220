import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from shared.utils import settings

from app.errors import CommitUncertain, TransactionFailed
from app.store import CommitOutcomeUnknown, DocumentStore, StoreError, Transaction, WriteConflict

logger = logging.getLogger("storefront-service.transactions")

R = TypeVar("R")


async def run_transaction(
    store: DocumentStore,
    work: Callable[[Transaction], Awaitable[R]],
    max_attempts: Optional[int] = None,
    backoff: Optional[float] = None,
    name: str = "transaction",
    replay_safe: bool = False,
) -> R:
    """Run ``work`` in a fresh transaction until it commits.

    Every attempt re-reads its documents, so a retry validates against the
    state left by whichever concurrent writer won. Exceptions raised by
    ``work`` itself (validation failures) are not retried and propagate
    unchanged. Conflicts and transient store errors are retried up to
    ``max_attempts`` times, then surface as ``TransactionFailed``.

    A commit whose result was lost may already be applied. It is only
    replayed when ``replay_safe`` is set, meaning ``work`` detects its own
    earlier commit; otherwise it surfaces at once as ``CommitUncertain``.
    """
    max_attempts = max_attempts or settings.ORDER_TX_MAX_ATTEMPTS
    backoff = settings.ORDER_TX_BACKOFF_SECONDS if backoff is None else backoff

    for attempt in range(1, max_attempts + 1):
        try:
            async with store.transaction() as tx:
                result = await work(tx)
            return result
        except CommitOutcomeUnknown as exc:
            if not replay_safe:
                logger.error(f"{name} commit outcome unknown: {exc}", extra={"attempt": attempt})
                raise CommitUncertain(attempt) from exc
            logger.warning(
                f"{name} attempt {attempt}/{max_attempts} commit outcome unknown, replaying: {exc}",
                extra={"attempt": attempt},
            )
        except (WriteConflict, StoreError) as exc:
            logger.warning(
                f"{name} attempt {attempt}/{max_attempts} aborted: {exc}",
                extra={"attempt": attempt},
            )
        if attempt < max_attempts and backoff:
            await asyncio.sleep(backoff * attempt)

    logger.error(f"{name} failed after {max_attempts} attempts")
    raise TransactionFailed(max_attempts)
