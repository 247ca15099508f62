"""Shopickup: multi-carrier shipping adapters with normalized results."""

__version__ = "0.4.0"
