"""Outline synthesis: prompt templates, provider catalog and the engine."""
