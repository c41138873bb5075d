"""Serializable records for callers of :mod:`depwatch.sdk`."""
