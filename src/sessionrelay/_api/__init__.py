"""Collector wire-format helpers (internal)."""
