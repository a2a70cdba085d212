"""Mindweave: source ingestion and LLM mind map synthesis."""
