"""Back-in-stock WhatsApp notification relay."""

__version__ = "1.0.0"
