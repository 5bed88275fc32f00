import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, OperationalError, SQLAlchemyError, TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.exceptions import TransientStoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")

WROTE_KEY = "store_unit_wrote"


def is_transient(exc: BaseException) -> bool:
    """Timeouts, lock contention and dropped connections are worth another attempt."""
    if isinstance(exc, (OperationalError, PoolTimeoutError, TransientStoreError)):
        return True
    return isinstance(exc, DBAPIError) and exc.connection_invalidated


def _mark_flush(session, flush_context) -> None:
    session.info[WROTE_KEY] = True


def _mark_write_statement(orm_execute_state) -> None:
    if not orm_execute_state.is_select:
        orm_execute_state.session.info[WROTE_KEY] = True


def _track_writes(session: AsyncSession) -> None:
    sync_session = session.sync_session
    if not event.contains(sync_session, "after_flush", _mark_flush):
        event.listen(sync_session, "after_flush", _mark_flush)
        event.listen(sync_session, "do_orm_execute", _mark_write_statement)
    sync_session.info[WROTE_KEY] = False


def has_writes(session: AsyncSession) -> bool:
    """True when the current unit flushed, executed a write, or holds unflushed changes."""
    if session.new or session.dirty or session.deleted:
        return True
    return bool(session.info.get(WROTE_KEY))


async def _abandon(session: AsyncSession, exc: Exception) -> None:
    if isinstance(exc, SQLAlchemyError) or has_writes(session):
        await session.rollback()
    else:
        # Nothing was written: end the transaction without expiring loaded rows
        await session.commit()


async def with_store_retry(
        session: AsyncSession,
        operation: Callable[[], Awaitable[T]],
        *,
        attempts: int = 3,
        base_delay: float = 0.05,
        name: str = "store operation"
) -> T:
    """Run one unit of work, rolling back and retrying it on transient store errors.

    Any other exception propagates unchanged. The unit is rolled back only if
    it wrote something; a read-only unit that fails keeps the caller's rows
    readable.
    """
    attempts = max(1, attempts)
    for attempt in range(1, attempts + 1):
        _track_writes(session)
        try:
            return await operation()
        except Exception as exc:
            if not is_transient(exc):
                await _abandon(session, exc)
                raise
            await session.rollback()
            if attempt == attempts:
                logger.error(f"{name} failed after {attempts} attempts: {exc}")
                raise TransientStoreError(detail=f"{name} failed: backing store unavailable") from exc
            delay = base_delay * (2 ** (attempt - 1))
            logger.warning(f"{name} hit a transient store error (attempt {attempt}/{attempts}), retrying in {delay:.2f}s: {exc}")
            await asyncio.sleep(delay)
    raise TransientStoreError(detail=f"{name} failed")
