"""
Alerts — Celery Tasks

@file alerts/tasks.py
"""

import logging

from celery import shared_task

logger = logging.getLogger('stockledger')


@shared_task(name='alerts.sweep_notifications')
def sweep_notifications_task():
    """
    Hourly task: re-evaluate every tracked pair and expiring item so that
    date-driven transitions and any missed evaluation are caught.
    """
    from .services import AlertService

    summary = AlertService.sweep()
    logger.info('sweep_notifications_task completed: %s', summary)
    return summary
