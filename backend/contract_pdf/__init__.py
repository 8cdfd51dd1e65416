"""Async HTML to PDF job pipeline: submission, render worker, artifact storage, status polling."""

__version__ = "1.0.0"
