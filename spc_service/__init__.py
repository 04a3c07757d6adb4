"""SPC computation service for quality-improvement dashboards."""

__version__ = "1.0.0"
