"""Desired-state store (peewee over SQLite)."""
