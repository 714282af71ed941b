"""Numisma: position and portfolio valuation for crypto and market holdings."""

__version__ = "0.1.0"
