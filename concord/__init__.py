"""Signed, encrypted chat messages stored in a proof-of-work block tree."""

__version__ = "0.1.0"