"""Daybook: personal context store, question answering and actionable feed."""

__version__ = "0.1.0"
