from celery import Celery
from classroom_chat.config import settings
import logging


celery_app = Celery(
    "chat_tasks",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["classroom_chat.workers.indexing_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    result_expires=3600,
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_routes={
        "classroom_chat.workers.indexing_tasks.index_message_events": {"queue": "indexing"},
        "classroom_chat.workers.indexing_tasks.drain_change_feed": {"queue": "indexing"},
        "classroom_chat.workers.indexing_tasks.rebuild_search_index": {"queue": "indexing"},
        "classroom_chat.workers.indexing_tasks.*": {"queue": "maintenance"},
    },
    task_default_retry_delay=10,
    task_max_retries=3,
    worker_max_tasks_per_child=100,
    broker_transport_options={"visibility_timeout": 3600},
    beat_schedule={
        "drain-change-feed": {
            "task": "classroom_chat.workers.indexing_tasks.drain_change_feed",
            "schedule": float(settings.change_feed_drain_interval_seconds),
        },
        "sweep-presence": {
            "task": "classroom_chat.workers.indexing_tasks.sweep_presence",
            "schedule": float(settings.presence_sweep_interval_seconds),
        },
        "purge-expired-messages": {
            "task": "classroom_chat.workers.indexing_tasks.purge_expired_messages",
            "schedule": 3600.0,
        },
        "repair-room-ownership": {
            "task": "classroom_chat.workers.indexing_tasks.repair_room_ownership",
            "schedule": 3600.0,
        },
    },
)
celery_app.conf.broker_connection_retry_on_startup = True

# Logging setup
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

# celery -A classroom_chat.celery_app worker -Q indexing,maintenance --loglevel=info
# celery -A classroom_chat.celery_app beat --loglevel=info
