"""
Celery application configuration.

This configures Celery with Redis as the broker and result backend. Each
Slack mention is handled by one task; the task time limit is the only bound
on how long a turn (including its polling loop) may take.
"""
from __future__ import annotations

import os
import sys
from pathlib import Path

# Ensure backend directory is in Python path for Celery workers
backend_dir = Path(__file__).resolve().parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

# Load .env BEFORE importing config/settings so workers and the API agree
from dotenv import load_dotenv
env_file = backend_dir / ".env"
if not env_file.exists():
    env_file = backend_dir.parent / ".env"
if env_file.exists():
    load_dotenv(env_file)
    print(f"[Celery] Loaded environment from: {env_file}")

from celery import Celery
from kombu import Exchange, Queue

from config import settings

celery_app = Celery(
    "gptslack",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=[
        "workers.tasks.chat",
    ],
)

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task settings
    task_track_started=True,
    task_time_limit=settings.CHAT_TASK_TIME_LIMIT_SECONDS,
    task_soft_time_limit=max(settings.CHAT_TASK_TIME_LIMIT_SECONDS - 30, 30),
    # A mention is handled at most once; never redeliver a half-finished turn
    task_acks_late=False,

    # Result settings
    result_expires=60 * 60 * 24,

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=int(os.environ.get("CELERY_CONCURRENCY", "4")),

    # Queue configuration
    task_queues=(
        Queue("chat", Exchange("chat"), routing_key="chat.#"),
    ),
    task_default_queue="chat",
    task_default_exchange="chat",
    task_default_routing_key="chat.mention",
)
