#!/usr/bin/env python3
"""
Celery worker script for the storefront payments service.
Runs the worker with an embedded beat scheduler for the nightly reconciliation.
"""

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    from core.celery import celery_app
    from core.logging_config import configure_logging

    configure_logging()

    celery_app.start([
        "worker",
        "--beat",
        "--loglevel=info",
        "--concurrency=2",
        "--without-gossip",
        "--without-mingle",
    ])
