"""Tubely video hosting backend."""

__version__ = "0.1.0"
