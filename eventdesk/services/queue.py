"""Queue service for background jobs using RQ."""

import os
from datetime import timedelta

import redis
from rq import Queue

from eventdesk.services.jobs import purge_expired_trash_job, retry_failed_emails_job


class QueueService:
    """Service for managing background job queues."""

    def __init__(self, redis_url=None):
        self.redis_conn = self._get_redis_connection(redis_url)
        self.email_queue = Queue('email', connection=self.redis_conn)
        self.default_queue = Queue(connection=self.redis_conn)

    def _get_redis_connection(self, redis_url=None):
        """Get Redis connection from environment."""
        redis_url = redis_url or os.getenv('REDIS_URL', 'redis://localhost:6379/0')
        return redis.from_url(redis_url)

    def enqueue_trash_purge(self):
        """Queue an immediate trash purge."""
        return self.default_queue.enqueue(purge_expired_trash_job)

    def schedule_trash_purge(self, delay=timedelta(days=1)):
        """Schedule the next daily trash purge."""
        return self.default_queue.enqueue_in(delay, purge_expired_trash_job)

    def enqueue_retry_failed_emails(self, limit=50):
        return self.email_queue.enqueue(retry_failed_emails_job, limit)

    def schedule_retry_failed_emails(self, limit=50):
        """Schedule retry of failed emails."""
        # Run every hour
        return self.email_queue.enqueue_in(timedelta(hours=1), retry_failed_emails_job, limit)


__all__ = ['QueueService']
