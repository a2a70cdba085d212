"""Pydantic v2 data models for ingestion, outlines, synthesis and streaming."""
