"""Scheduler backends for background ingestion."""
