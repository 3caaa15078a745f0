"""Terminal console for the whawty credential service."""

__version__ = "0.3.0"
