"""Command line interface for the learning core."""
