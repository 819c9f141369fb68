"""Watershed correction for touching objects with irregular boundaries."""

__version__ = "0.1.0"
