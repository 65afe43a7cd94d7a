"""Vendor export import pipeline: decode, resolve headers, normalize, classify, reconcile, commit."""

__version__ = "0.1.0"
