"""Adapters for Visit-Guard (visit repositories and JSON loading)."""
