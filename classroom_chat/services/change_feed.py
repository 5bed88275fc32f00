from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.exceptions import MalformedEventError, TransientStoreError
from classroom_chat.models.message_event import MessageEvent
from classroom_chat.models.room import utcnow
from classroom_chat.schemas.events import ChangeEvent
from classroom_chat.services.message_store import MessageStore
from classroom_chat.services.search_index import SearchIndex
from classroom_chat.utils.retry import with_store_retry

logger = logging.getLogger(__name__)


def parse_change(record: Mapping[str, Any]) -> ChangeEvent:
    try:
        return ChangeEvent.model_validate(record)
    except PydanticValidationError as e:
        raise MalformedEventError(f"Malformed change event {dict(record)!r}: {e.error_count()} validation errors") from e


class ChangeFeedIndexer:
    """Applies message change events to the search index.

    Delivery is at-least-once, so ``apply`` re-reads the message and projects
    its current state: replaying or reordering events converges on the same
    documents. Malformed events are logged and skipped; transient store
    failures leave the event pending for a later retry.
    """

    def __init__(
            self,
            db: AsyncSession,
            max_event_attempts: int = 5,
            retry_attempts: int = 3,
            retry_base_delay: float = 0.05
    ):
        self.db = db
        self.messages = MessageStore(db)
        self.index = SearchIndex(db)
        self.max_event_attempts = max_event_attempts
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay

    async def apply(self, change: ChangeEvent) -> None:
        # The row lock orders concurrent projections of one message: whoever
        # projects last read the newest committed state
        message = await self.messages.get_for_update(change.message_id)
        if message is None:
            # Purged, or never committed: nothing may stay searchable
            await self.index.remove(change.message_id)
            logger.info(f"Removed search document for message {change.message_id} ({change.event_type.value})")
            return
        if message.room_id != change.room_id:
            raise MalformedEventError(
                f"Event {change.event_id} names room {change.room_id} but message {message.id} is in {message.room_id}"
            )
        try:
            await self.index.project(message, change.event_id)
        except IntegrityError as e:
            # Another indexer inserted the first document; the retry updates it
            raise TransientStoreError(
                detail=f"Search document for message {message.id} was created concurrently"
            ) from e
        logger.info(f"Indexed message {message.id} from event {change.event_id} ({change.event_type.value})")

    async def apply_record(self, record: Mapping[str, Any]) -> bool:
        """Apply one raw feed record. Returns False when the record was skipped as malformed."""
        try:
            change = parse_change(record)
        except MalformedEventError as e:
            logger.warning(f"Skipping change event: {e}")
            return False

        async def _apply():
            await self.apply(change)
            await self.db.commit()

        try:
            await with_store_retry(
                self.db, _apply,
                attempts=self.retry_attempts,
                base_delay=self.retry_base_delay,
                name=f"index event {change.event_id}"
            )
        except MalformedEventError as e:
            logger.warning(f"Skipping change event: {e}")
            return False
        return True

    async def process_pending(self, batch_size: int = 100) -> int:
        events = await self.messages.pending_events(batch_size)
        return await self._process(events)

    async def process_events(self, event_ids: Sequence[int]) -> int:
        events = [event for event in await self.messages.get_events(event_ids) if event.processed_at is None]
        return await self._process(events)

    async def _process(self, events: Sequence[MessageEvent]) -> int:
        # Snapshot plain values: a rollback after a failed write expires ORM state
        records = [
            {
                "event_id": event.id,
                "message_id": event.message_id,
                "room_id": event.room_id,
                "event_type": event.event_type,
                "attempts": event.attempts,
            }
            for event in events
        ]
        processed = 0
        for record in records:
            event_id = record["event_id"]
            try:
                change = parse_change(record)
            except MalformedEventError as e:
                logger.warning(f"Skipping change event {event_id}: {e}")
                await self._finish(event_id, error=str(e))
                continue

            async def _apply():
                await self.apply(change)
                await self._mark_processed(event_id)
                await self.db.commit()

            try:
                await with_store_retry(
                    self.db, _apply,
                    attempts=self.retry_attempts,
                    base_delay=self.retry_base_delay,
                    name=f"index event {event_id}"
                )
            except MalformedEventError as e:
                logger.warning(f"Skipping change event {event_id}: {e}")
                await self._finish(event_id, error=str(e))
                continue
            except TransientStoreError as e:
                attempts = record["attempts"] + 1
                if attempts >= self.max_event_attempts:
                    logger.error(f"Giving up on change event {event_id} after {attempts} attempts: {e.detail}")
                    await self._finish(event_id, error=e.detail, attempts=attempts)
                    continue
                await self._record_failure(event_id, e.detail)
                raise
            processed += 1
        return processed

    async def _mark_processed(self, event_id: int, error: str | None = None, attempts: int | None = None) -> None:
        values = {"processed_at": utcnow(), "last_error": error}
        if attempts is not None:
            values["attempts"] = attempts
        await self.db.execute(
            update(MessageEvent)
            .where(MessageEvent.id == event_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

    async def _finish(self, event_id: int, error: str, attempts: int | None = None) -> None:
        await self._mark_processed(event_id, error=error, attempts=attempts)
        await self.db.commit()

    async def _record_failure(self, event_id: int, error: str) -> None:
        try:
            await self.db.execute(
                update(MessageEvent)
                .where(MessageEvent.id == event_id)
                .values(attempts=MessageEvent.attempts + 1, last_error=error)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Could not record failure for change event {event_id}: {e}")

    async def rebuild(self, room_id: UUID | None = None, batch_size: int = 500) -> int:
        """Drop and re-project search documents from the message store."""
        removed = await self.index.clear(room_id)
        await self.db.commit()
        indexed = 0
        async for batch in self.messages.iter_room(room_id, batch_size=batch_size):
            for message in batch:
                if message.is_deleted:
                    continue
                await self.index.project(message, 0)
                indexed += 1
            await self.db.commit()
        logger.info(f"Rebuilt search index{' for room ' + str(room_id) if room_id else ''}: removed {removed}, indexed {indexed}")
        return indexed
