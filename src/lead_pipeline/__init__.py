"""Lead enrichment, validation, scoring and automation pipeline."""

__version__ = "1.0.0"
