"""Data access layer: cache backends and upstream token sources."""
