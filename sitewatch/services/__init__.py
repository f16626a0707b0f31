"""Canonicalizer, crawler, change detection and generation services."""
