"""Service modules"""
from .pipeline import Pipeline
from .quote_cache import QuoteCache
from .quote_client import QuoteClient

__all__ = ["Pipeline", "QuoteCache", "QuoteClient"]
