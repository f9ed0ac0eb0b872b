"""Background tasks of the hub daemon."""
