"""FUTALYST challenge league service."""

__version__ = "1.0.0"
