"""Notification channels and per-layer dispatch fan-out."""
