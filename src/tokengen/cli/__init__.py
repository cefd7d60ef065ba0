"""Command line interface for tokengen."""
