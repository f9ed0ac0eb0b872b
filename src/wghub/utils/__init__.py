"""Shared utilities (logging, locking)."""
