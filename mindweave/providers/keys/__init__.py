"""API key lookup backends."""
