from __future__ import annotations

import logging
from typing import Sequence
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from classroom_chat.models.message import Message
from classroom_chat.models.search_document import SearchDocument
from classroom_chat.schemas.pagination import Pagination

logger = logging.getLogger(__name__)


def normalize(text: str) -> str:
    return " ".join(text.lower().split())


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


class SearchIndex:
    """Derived, eventually consistent copy of messages for term search.

    Never authoritative: everything here can be dropped and rebuilt from
    the message store.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, message_id: UUID) -> SearchDocument | None:
        return await self.db.get(SearchDocument, message_id, populate_existing=True)

    async def project(self, message: Message, event_id: int) -> SearchDocument:
        """Upsert the document for ``message``; deleted messages become tombstones."""
        document = await self.get(message.id)
        if document is None:
            document = SearchDocument(message_id=message.id)
            self.db.add(document)
        document.room_id = message.room_id
        document.author_id = message.author_id
        document.message_type = message.message_type.value
        document.seq = message.seq
        document.created_at = message.created_at
        document.edited_at = message.edited_at
        document.is_deleted = bool(message.is_deleted)
        document.body = "" if message.is_deleted else message.content
        document.body_normalized = normalize(document.body)
        document.last_event_id = max(document.last_event_id or 0, event_id)
        await self.db.flush()
        return document

    async def remove(self, message_id: UUID) -> bool:
        result = await self.db.execute(
            delete(SearchDocument)
            .where(SearchDocument.message_id == message_id)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount > 0

    async def clear(self, room_id: UUID | None = None) -> int:
        statement = delete(SearchDocument)
        if room_id is not None:
            statement = statement.where(SearchDocument.room_id == room_id)
        result = await self.db.execute(statement.execution_options(synchronize_session="fetch"))
        return result.rowcount

    async def search(
            self,
            room_id: UUID,
            query: str,
            pagination: Pagination,
            author_id: str | None = None,
            message_type: str | None = None,
            min_seq: int = 0
    ) -> tuple[int, Sequence[SearchDocument]]:
        """Every term must appear (case-insensitive); newest first."""
        terms = normalize(query).split(" ")
        statement = select(SearchDocument).where(
            SearchDocument.room_id == room_id,
            SearchDocument.is_deleted == False,
            SearchDocument.seq > min_seq,
        )
        for term in terms:
            statement = statement.where(SearchDocument.body_normalized.like(_like_pattern(term), escape="\\"))
        if author_id:
            statement = statement.where(SearchDocument.author_id == author_id)
        if message_type:
            statement = statement.where(SearchDocument.message_type == message_type)

        total = (await self.db.execute(select(func.count()).select_from(statement.subquery()))).scalar()
        result = await self.db.execute(
            statement.order_by(SearchDocument.seq.desc()).offset(pagination.offset).limit(pagination.size)
        )
        return total, result.scalars().all()
