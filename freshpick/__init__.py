"""FreshPick grocery client core: pricing, cart, bundles and order tracking."""

__version__ = "0.1.0"
