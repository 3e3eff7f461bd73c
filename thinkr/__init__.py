"""Thinkr: retrieval-augmented study assistant core."""

__version__ = "0.1.0"
