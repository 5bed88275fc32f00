import logging
from abc import ABC, abstractmethod
from typing import Sequence

logger = logging.getLogger(__name__)


class IndexDispatcher(ABC):
    """Hands committed change-feed event ids to the background indexer."""

    @abstractmethod
    def dispatch(self, event_ids: Sequence[int]) -> None:
        ...


class CeleryIndexDispatcher(IndexDispatcher):

    def dispatch(self, event_ids: Sequence[int]) -> None:
        if not event_ids:
            return
        # Imported lazily so the API process only needs the broker when it dispatches
        from classroom_chat.workers.indexing_tasks import index_message_events
        try:
            index_message_events.delay(list(event_ids))
        except Exception as e:
            # The periodic drain task picks up whatever was not dispatched
            logger.warning(f"Could not queue indexing for events {list(event_ids)}: {e}")


class NullIndexDispatcher(IndexDispatcher):
    """Leaves events for the periodic drain task."""

    def dispatch(self, event_ids: Sequence[int]) -> None:
        logger.debug(f"Deferring indexing of events {list(event_ids)} to the drain task")
