"""Visit-Guard: business-rule validation for EMR visit records."""

__version__ = "1.0.0"
