"""Record store backends (in-memory and SQLite)."""
