"""Labeled console logging and JSON Lines error log."""
