"""Rich renderables for CLI output."""
