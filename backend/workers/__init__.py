"""
Celery workers for background task processing.

This module provides:
- celery_app: The main Celery application instance
- tasks: Task modules (chat mentions)
"""
from workers.celery_app import celery_app

__all__ = ["celery_app"]
