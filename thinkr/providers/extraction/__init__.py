"""Text extraction adapters."""

from thinkr.providers.extraction.local_extraction_provider import LocalExtractionProvider

__all__ = ["LocalExtractionProvider"]
