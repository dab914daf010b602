"""Command-line interface for optionbook."""
