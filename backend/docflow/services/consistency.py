"""Read-after-write confirmation for freshly built flows.

A flow committed on the primary may not be readable yet from the replica
(or any other read path). ``await_flow_visible`` polls with bounded
backoff until it is, retrying only on ``NotFoundError``. Any other error
is surfaced on the first attempt.
"""
import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload, sessionmaker
from tenacity import (
    AsyncRetrying,
    RetryError,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_chain,
    wait_exponential,
    wait_fixed,
)

from docflow.core.errors import FlowTimeoutError, NotFoundError
from docflow.models.approval_flow import ApprovalFlow

logger = logging.getLogger(__name__)


def get_latest_flow(db: Session, document_id: uuid.UUID) -> ApprovalFlow:
    """Most recent flow of a document (the active one if any). Raises NotFoundError."""
    flow = db.execute(
        select(ApprovalFlow)
        .options(selectinload(ApprovalFlow.steps))
        .where(ApprovalFlow.document_id == document_id)
        .order_by(ApprovalFlow.created_at.desc())
        .limit(1)
    ).scalars().first()
    if flow is None:
        raise NotFoundError(f"No approval flow found for document {document_id}.")
    return flow


def flow_reader(session_factory: sessionmaker) -> Callable[[uuid.UUID], ApprovalFlow]:
    """Build a reader that opens a fresh session per attempt."""
    def read(document_id: uuid.UUID) -> ApprovalFlow:
        with session_factory() as db:
            return get_latest_flow(db, document_id)
    return read


def _wait_strategy(backoff_schedule: Sequence[float] | None):
    if backoff_schedule:
        return wait_chain(*[wait_fixed(delay) for delay in backoff_schedule])
    return wait_exponential(multiplier=0.3, max=2)


async def await_flow_visible(
    read_flow: Callable[[uuid.UUID], ApprovalFlow],
    document_id: uuid.UUID,
    max_attempts: int,
    backoff_schedule: Sequence[float] | None = None,
    expected_flow_id: uuid.UUID | None = None,
    timeout: float | None = None,
) -> ApprovalFlow:
    """Poll ``read_flow`` until the document's flow is readable.

    ``expected_flow_id`` guards resubmissions: an older flow that is still
    the latest visible one counts as "not visible yet". ``timeout`` caps the
    total wait; cancelling the awaiting task stops polling immediately.

    Raises:
        FlowTimeoutError: attempts or time budget exhausted.
        WorkflowError: any non-NotFound error from ``read_flow``, unretried.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def read_once() -> ApprovalFlow:
        flow = read_flow(document_id)
        if expected_flow_id is not None and str(flow.id) != str(expected_flow_id):
            raise NotFoundError(
                f"Flow {expected_flow_id} for document {document_id} is not visible yet."
            )
        return flow

    retrying = AsyncRetrying(
        retry=retry_if_exception_type(NotFoundError),
        stop=stop_after_attempt(max_attempts),
        wait=_wait_strategy(backoff_schedule),
        before_sleep=before_sleep_log(logger, logging.INFO),
    )

    try:
        flow = await asyncio.wait_for(
            retrying(asyncio.to_thread, read_once), timeout=timeout
        )
    except RetryError:
        logger.warning(
            "Flow for document %s not visible after %d attempts", document_id, max_attempts
        )
        raise FlowTimeoutError(
            "Document submitted; approval flow is pending confirmation.",
            details={"document_id": str(document_id), "attempts": max_attempts},
        ) from None
    except asyncio.TimeoutError:
        logger.warning(
            "Flow for document %s not visible within %.1fs", document_id, timeout
        )
        raise FlowTimeoutError(
            "Document submitted; approval flow is pending confirmation.",
            details={"document_id": str(document_id), "timeout_seconds": timeout},
        ) from None

    logger.info("Flow %s for document %s is visible", flow.id, document_id)
    return flow
