"""Command line interface for photovault."""
