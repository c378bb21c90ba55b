"""Celery worker for account notices and housekeeping."""
