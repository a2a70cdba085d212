"""Content ingestion: connectors, chunking and the job orchestrator."""
