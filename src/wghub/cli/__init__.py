"""Command line interface of wghub."""
