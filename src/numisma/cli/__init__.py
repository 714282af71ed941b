"""Command-line interface for Numisma."""
