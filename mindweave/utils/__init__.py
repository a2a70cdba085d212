"""Shared utilities: errors, logging, retry and outline tree helpers."""
