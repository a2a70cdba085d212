"""Command-line interface for ingesting sources and generating mind maps."""
