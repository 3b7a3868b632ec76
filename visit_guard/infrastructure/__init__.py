"""Infrastructure layer for Visit-Guard (configuration, settings, logging)."""
