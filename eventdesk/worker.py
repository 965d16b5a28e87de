"""RQ Worker for background job processing."""

import os

import redis
from dotenv import load_dotenv
from rq import Queue, Worker

# Load environment variables
load_dotenv()


def get_redis_connection():
    """Get Redis connection from environment."""
    redis_url = os.getenv('REDIS_URL', 'redis://localhost:6379/0')
    return redis.from_url(redis_url)


def setup_queues(redis_conn):
    """Email first, then everything else."""
    return [
        Queue('email', connection=redis_conn),
        Queue(connection=redis_conn),
    ]


def main():
    redis_conn = get_redis_connection()
    queues = setup_queues(redis_conn)
    worker = Worker(queues, connection=redis_conn)
    print(f"Listening on queues: {[queue.name for queue in queues]}")
    worker.work(with_scheduler=True)


if __name__ == '__main__':
    main()
