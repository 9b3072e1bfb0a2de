"""Shared helpers: exception tree, logging setup, environment flags."""
