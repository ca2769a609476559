"""Filedrop: single-file upload service with age-based retention."""

__version__ = "0.1.0"
