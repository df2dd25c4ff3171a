"""Stock portfolio summary for menu-bar status plugins."""

__version__ = "0.1.0"
