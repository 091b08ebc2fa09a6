"""Classiflyer - filesystem-backed binder store."""

__version__ = "0.1.0"
