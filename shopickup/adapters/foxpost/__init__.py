"""Foxpost adapter."""

from shopickup.adapters.foxpost.adapter import FoxpostAdapter
from shopickup.adapters.foxpost.errors import FOXPOST_ERROR_CODES, translate_foxpost_error

__all__ = ["FOXPOST_ERROR_CODES", "FoxpostAdapter", "translate_foxpost_error"]
