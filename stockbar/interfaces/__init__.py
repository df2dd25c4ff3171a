"""Protocol interfaces for stockbar."""
from .quote_provider import QuoteProvider
from .quote_store import QuoteStore

__all__ = ["QuoteProvider", "QuoteStore"]
