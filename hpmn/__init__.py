"""HPMN: recall, relevance-filter and respond pipeline for a personal assistant."""

__version__ = "0.3.0"
