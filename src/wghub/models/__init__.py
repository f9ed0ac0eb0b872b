"""Enumerations and request/result models."""
