"""Composition root, configuration and in-process adapters."""
