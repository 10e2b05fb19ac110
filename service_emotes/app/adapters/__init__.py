"""
Adapters package for the Emote Service.

Contains the HTTP client wrapper for the external marketplace. Adapters
translate transport failures into catalog outcomes; nothing raised by the
network crosses into the request path.
"""

from .marketplace_client import MarketplaceValidator

__all__ = [
    "MarketplaceValidator",
]
