"""Business logic: ingestion, outline validation and synthesis."""
