"""Concrete adapters for the interfaces in ``mindweave.interfaces``."""
